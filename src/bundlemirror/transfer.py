from __future__ import annotations

import ftplib
from pathlib import Path
from typing import BinaryIO, Callable, ContextManager, Protocol

from bundlemirror.errors import TransferError


CHUNK_SIZE = 1024 * 1024

ChunkCallback = Callable[[int, int], None]


class FileSource(Protocol):
    def open_file(self, remote_address: str) -> ContextManager[BinaryIO]: ...


def transfer_file(
    source: FileSource,
    remote_address: str,
    local_path: Path,
    on_chunk: ChunkCallback | None = None,
    chunk_size: int = CHUNK_SIZE,
) -> int:
    """Download one remote file to ``local_path``, truncating any previous content.

    ``on_chunk(file_bytes, delta)`` runs after every chunk is written. Returns
    the number of bytes written.
    """
    written = 0
    try:
        with source.open_file(remote_address) as reader, local_path.open("wb") as handle:
            for chunk in iter(lambda: reader.read(chunk_size), b""):
                handle.write(chunk)
                written += len(chunk)
                if on_chunk is not None:
                    on_chunk(written, len(chunk))
    except TransferError:
        raise
    except ftplib.all_errors as exc:
        raise TransferError(remote_address, exc) from exc
    return written
