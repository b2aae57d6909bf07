"""Archive log of processed videos: one ``name|key|notes`` line per entry."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path

from models.archive import ARCHIVE_DELIMITER, ArchiveEntry
from models.job import AnalysisJob
from services.settings import get_archive_path

logger = logging.getLogger(__name__)

ARCHIVE_NAME_FORMAT = "%m/%d/%Y %H:%M:%S"


def _single_line(text: str) -> str:
    return text.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def _clean_name(name: str) -> str:
    return _single_line(name).replace(ARCHIVE_DELIMITER, " ").strip()


def default_archive_name(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime(ARCHIVE_NAME_FORMAT)


def entry_for_job(job: AnalysisJob, name: str | None = None) -> ArchiveEntry:
    """Build the archive entry for a succeeded job (processed key + stroke summary)."""
    if job.processed_key is None or job.stroke_counts is None:
        raise ValueError(f"job {job.id} has no processed result to archive")
    return ArchiveEntry(
        name=name or default_archive_name(job.finished_at),
        key=job.processed_key,
        notes=job.stroke_counts.summary(),
    )


class ArchiveLog:
    """
    Text file archive. Lines that do not have at least a name and a key are
    skipped on load; extra delimiters are kept as part of the notes.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path or get_archive_path()

    def load(self) -> list[ArchiveEntry]:
        path = self.path
        if not path.exists():
            logger.info("[archive] No archive log at %s", path)
            return []
        entries: list[ArchiveEntry] = []
        for line in path.read_text(encoding="utf-8").splitlines():
            parts = line.split(ARCHIVE_DELIMITER)
            if len(parts) < 2 or not parts[1]:
                continue
            entries.append(
                ArchiveEntry(name=parts[0], key=parts[1], notes=ARCHIVE_DELIMITER.join(parts[2:]))
            )
        return entries

    def append(self, entry: ArchiveEntry) -> bool:
        """Append ``entry``; returns False when the (name, key) pair is already present."""
        entry = self._normalize(entry)
        if any(e.name == entry.name and e.key == entry.key for e in self.load()):
            logger.info("[archive] Entry %r/%s already exists, skipping", entry.name, entry.key)
            return False
        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(self._format(entry) + "\n")
        logger.info("[archive] Saved entry %r/%s", entry.name, entry.key)
        return True

    def save(self, entries: list[ArchiveEntry]) -> None:
        """Rewrite the whole log (used after editing names or notes)."""
        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)
        text = "".join(self._format(self._normalize(e)) + "\n" for e in entries)
        partial = path.with_name(path.name + ".tmp")
        partial.write_text(text, encoding="utf-8")
        os.replace(partial, path)

    def update(self, key: str, *, name: str | None = None, notes: str | None = None) -> ArchiveEntry | None:
        entries = self.load()
        for entry in entries:
            if entry.key == key:
                if name is not None:
                    entry.name = name
                if notes is not None:
                    entry.notes = notes
                self.save(entries)
                return self._normalize(entry)
        return None

    def clear(self) -> None:
        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("", encoding="utf-8")
        logger.info("[archive] Cleared %s", path)

    @staticmethod
    def _normalize(entry: ArchiveEntry) -> ArchiveEntry:
        if ARCHIVE_DELIMITER in entry.key or "\n" in entry.key:
            raise ValueError(f"archive key {entry.key!r} contains a delimiter")
        return ArchiveEntry(
            name=_clean_name(entry.name),
            key=entry.key,
            notes=_single_line(entry.notes),
        )

    @staticmethod
    def _format(entry: ArchiveEntry) -> str:
        return ARCHIVE_DELIMITER.join((entry.name, entry.key, entry.notes))
