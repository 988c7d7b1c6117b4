import pytest

from bundlemirror.errors import ListingError
from bundlemirror.listing import RemoteTreeLister, parse_listing, parse_listing_line
from bundlemirror.models import EntryKind, RemoteEntry


def test_parse_file_line() -> None:
    entry = parse_listing_line("12-02-20  04:24PM             60570002 Ambre_6.00.00.cosopack")

    assert entry == RemoteEntry(name="Ambre_6.00.00.cosopack", kind=EntryKind.FILE, size_bytes=60570002)


def test_parse_directory_line() -> None:
    entry = parse_listing_line("12-02-20  11:14PM       <DIR>          supernova")

    assert entry == RemoteEntry(name="supernova", kind=EntryKind.DIRECTORY)
    assert entry.size_bytes is None
    assert entry.is_dir


def test_name_with_spaces_stays_in_last_field() -> None:
    entry = parse_listing_line("01-15-21  09:03AM                  512 Read Me  First.txt\r\n")

    assert entry.name == "Read Me  First.txt"
    assert entry.size_bytes == 512


def test_zero_size_file() -> None:
    entry = parse_listing_line("01-15-21  09:03AM                    0 empty.flag")

    assert entry.kind is EntryKind.FILE
    assert entry.size_bytes == 0


@pytest.mark.parametrize(
    "line",
    [
        "12-02-20  04:24PM  60570002",
        "total 12",
        "12-02-20  04:24PM  60,570,002 Ambre.cosopack",
        "12-02-20  04:24PM  -5 negative.bin",
        "drwxr-xr-x 2 ftp ftp 4096 Jan 01 00:00 unix-style",
    ],
)
def test_malformed_lines_raise(line: str) -> None:
    with pytest.raises(ListingError) as excinfo:
        parse_listing_line(line, "/builds")

    assert excinfo.value.address == "/builds"


def test_parse_listing_skips_blank_lines_but_keeps_order() -> None:
    entries = parse_listing(
        [
            "12-02-20  11:14PM       <DIR>          zeta",
            "",
            "12-02-20  04:24PM                   10 alpha.txt",
            "   ",
            "12-02-20  11:14PM       <DIR>          beta",
        ]
    )

    assert [entry.name for entry in entries] == ["zeta", "alpha.txt", "beta"]


def test_lister_reads_lines_from_source(fake_remote) -> None:
    remote = fake_remote({"root": {"a.txt": b"0123456789", "sub": {}}})

    entries = RemoteTreeLister(remote).list("/root")

    assert entries == [
        RemoteEntry(name="a.txt", kind=EntryKind.FILE, size_bytes=10),
        RemoteEntry(name="sub", kind=EntryKind.DIRECTORY),
    ]
    assert remote.listed == ["/root"]


def test_lister_propagates_unreachable_directory(fake_remote) -> None:
    remote = fake_remote({})

    with pytest.raises(ListingError):
        RemoteTreeLister(remote).list("/missing")


def test_parse_listing_drops_self_and_parent_entries() -> None:
    entries = parse_listing(
        [
            "12-02-20  11:14PM       <DIR>          .",
            "12-02-20  11:14PM       <DIR>          ..",
            "12-02-20  04:24PM                   10 alpha.txt",
        ]
    )

    assert [entry.name for entry in entries] == ["alpha.txt"]


@pytest.mark.parametrize("name", ["../escape.txt", "sub/inner.txt", "..\\escape.txt", "/etc/passwd"])
def test_names_with_path_separators_raise(name: str) -> None:
    with pytest.raises(ListingError, match="path separator"):
        parse_listing_line(f"12-02-20  04:24PM                    3 {name}", "/r")
