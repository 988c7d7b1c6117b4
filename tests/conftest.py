from __future__ import annotations

from contextlib import contextmanager
import io
from pathlib import PurePosixPath
from typing import Iterator

import pytest

from bundlemirror.errors import ListingError


class _DroppingReader:
    """Serves part of a file, then fails like a reset data connection."""

    def __init__(self, data: bytes) -> None:
        self._buffer = io.BytesIO(data[: len(data) // 2])

    def read(self, size: int = -1) -> bytes:
        chunk = self._buffer.read(size)
        if chunk:
            return chunk
        raise ConnectionResetError("data connection reset")


class FakeRemote:
    """In-memory remote tree served as DOS-style listing lines.

    ``tree`` maps names to ``bytes`` (files) or nested dicts (directories).
    """

    def __init__(self, tree: dict) -> None:
        self.tree = tree
        self.failures: dict[str, int] = {}
        self.listed: list[str] = []
        self.opened: list[str] = []
        self.open_readers = 0

    def _node(self, address: str) -> dict | bytes:
        node: dict | bytes = self.tree
        for part in PurePosixPath(address).parts:
            if part == "/":
                continue
            if not isinstance(node, dict) or part not in node:
                raise KeyError(address)
            node = node[part]
        return node

    def list_lines(self, remote_address: str) -> list[str]:
        self.listed.append(remote_address)
        try:
            node = self._node(remote_address)
        except KeyError:
            raise ListingError(remote_address, "550 No such directory") from None
        if not isinstance(node, dict):
            raise ListingError(remote_address, "550 Not a directory")

        lines = []
        for name, child in node.items():
            if isinstance(child, dict):
                lines.append(f"12-02-20  11:14PM       <DIR>          {name}")
            else:
                lines.append(f"12-02-20  04:24PM {len(child):>20} {name}")
        return lines

    @contextmanager
    def open_file(self, remote_address: str) -> Iterator[io.RawIOBase]:
        self.opened.append(remote_address)
        data = self._node(remote_address)
        assert isinstance(data, bytes)
        if self.failures.get(remote_address, 0) > 0:
            self.failures[remote_address] -= 1
            reader = _DroppingReader(data)
        else:
            reader = io.BytesIO(data)
        self.open_readers += 1
        try:
            yield reader
        finally:
            self.open_readers -= 1

    def close(self) -> None:
        pass


@pytest.fixture
def fake_remote() -> type[FakeRemote]:
    return FakeRemote
