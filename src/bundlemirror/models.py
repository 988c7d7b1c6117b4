from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True, slots=True)
class RemoteEntry:
    name: str
    kind: EntryKind
    size_bytes: int | None = None

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


@dataclass(frozen=True, slots=True)
class TransferTarget:
    remote_address: str
    local_path: Path


@dataclass(slots=True)
class MirrorStats:
    files: int = 0
    directories: int = 0
    bytes_transferred: int = 0
    retries: int = 0
