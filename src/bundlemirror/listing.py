from __future__ import annotations

import re
from typing import Iterable, Protocol

from bundlemirror.errors import ListingError
from bundlemirror.models import EntryKind, RemoteEntry


DIRECTORY_MARKER = "<DIR>"

# IIS/DOS listings have 4 fields (date, time, size-or-marker, name), not the
# 9 of a unix ls -l line; the name keeps embedded spaces
_FIELD_COUNT = 4
_SIZE_FIELD = 2
_NAME_FIELD = 3
_UNSIGNED = re.compile(r"[0-9]+")
_SELF_AND_PARENT = (".", "..")


class ListingSource(Protocol):
    def list_lines(self, remote_address: str) -> list[str]: ...


def parse_listing_line(line: str, address: str = "") -> RemoteEntry:
    """Parse one line of an IIS/DOS style ``LIST`` response.

    ``12-02-20  04:24PM             60570002 Ambre_6.00.00.cosopack`` is a file,
    ``12-02-20  11:14PM       <DIR>          supernova`` a directory.
    """
    fields = line.split(maxsplit=_FIELD_COUNT - 1)
    if len(fields) != _FIELD_COUNT:
        raise ListingError(address, f"expected {_FIELD_COUNT} fields in listing line {line!r}")

    name = fields[_NAME_FIELD].rstrip("\r\n")
    size_token = fields[_SIZE_FIELD]

    if "/" in name or "\\" in name:
        raise ListingError(address, f"entry name contains a path separator in listing line {line!r}")

    if size_token.upper() == DIRECTORY_MARKER:
        return RemoteEntry(name=name, kind=EntryKind.DIRECTORY)

    if not _UNSIGNED.fullmatch(size_token):
        raise ListingError(address, f"invalid size {size_token!r} in listing line {line!r}")
    return RemoteEntry(name=name, kind=EntryKind.FILE, size_bytes=int(size_token))


def parse_listing(lines: Iterable[str], address: str = "") -> list[RemoteEntry]:
    entries = [parse_listing_line(line, address) for line in lines if line.strip()]
    return [entry for entry in entries if entry.name not in _SELF_AND_PARENT]


class RemoteTreeLister:
    def __init__(self, source: ListingSource) -> None:
        self._source = source

    def list(self, remote_address: str) -> list[RemoteEntry]:
        lines = self._source.list_lines(remote_address)
        return parse_listing(lines, remote_address)
