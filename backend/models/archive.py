from dataclasses import dataclass

ARCHIVE_DELIMITER = "|"


@dataclass
class ArchiveEntry:
    name: str              # user-facing title, defaults to the completion timestamp
    key: str               # processed video key on the remote service
    notes: str = ""        # stroke summary or free text, single line on disk
