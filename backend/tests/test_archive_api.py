from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.main import app
from models.archive import ArchiveEntry
from services.archive import ArchiveLog

client = TestClient(app)


@pytest.fixture
def archive(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ArchiveLog:
    log = ArchiveLog(tmp_path / "archive_log.txt")
    monkeypatch.setattr("routes.archive.archive_log", log)
    return log


def test_list_update_and_clear_archive(archive: ArchiveLog) -> None:
    archive.append(ArchiveEntry(name="Morning", key="out/abc123.mp4", notes="Near - FH: 3"))

    listed = client.get("/api/archive")
    assert listed.status_code == 200
    assert listed.json() == [{"name": "Morning", "key": "out/abc123.mp4", "notes": "Near - FH: 3"}]

    updated = client.patch("/api/archive/out/abc123.mp4", json={"name": "Evening"})
    assert updated.status_code == 200
    assert updated.json()["name"] == "Evening"
    assert archive.load()[0].name == "Evening"

    assert client.patch("/api/archive/missing", json={"name": "x"}).status_code == 404

    cleared = client.delete("/api/archive")
    assert cleared.status_code == 204
    assert client.get("/api/archive").json() == []
