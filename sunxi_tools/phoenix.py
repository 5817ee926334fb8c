"""Inspect and extract the partitions of a Phoenix card image."""

from __future__ import annotations

import getopt
import io
import re
import struct
import sys
from dataclasses import dataclass
from typing import BinaryIO, Optional, Sequence

__all__ = [
    "SIGNATURE",
    "TABLE_OFFSET",
    "TABLE_SIZE",
    "SECTOR_SIZE",
    "MAX_ENTRIES",
    "ENTRY_SIGNATURE",
    "PhoenixError",
    "PhoenixEntry",
    "PhoenixTable",
    "read_table",
    "format_header",
    "format_entry",
    "output_name",
    "save_part",
    "main",
]

SIGNATURE = b"PHOENIX_CARD_IMG"
TABLE_OFFSET = 0x1C00
TABLE_SIZE = 0x400
SECTOR_SIZE = 0x200
MAX_ENTRIES = 62
ENTRY_SIGNATURE = 0x00646461  # "add\0"

_HEADER = struct.Struct("<16sIHH8s")
_ENTRY = struct.Struct("<IIII")


class PhoenixError(Exception):
    """Raised for images that are not Phoenix images or parts that cannot be saved."""


@dataclass(frozen=True)
class PhoenixEntry:
    """One partition entry: start in 512-byte blocks, size in bytes."""

    start: int
    size: int
    unknown: int
    sig: int


@dataclass(frozen=True)
class PhoenixTable:
    """The partition table found at offset 0x1C00 of a Phoenix image."""

    signature: bytes
    unknown1: int
    parts: int
    unknown2: int
    pad: bytes
    entries: tuple[PhoenixEntry, ...]

    @classmethod
    def parse(cls, data: bytes) -> "PhoenixTable":
        """Decode a 0x400-byte partition table."""
        data = bytes(data)
        if len(data) < TABLE_SIZE:
            raise PhoenixError("Not a phoenix image")
        signature, unknown1, parts, unknown2, pad = _HEADER.unpack_from(data, 0)
        if signature != SIGNATURE:
            raise PhoenixError("Not a phoenix image")
        entries = tuple(
            PhoenixEntry(*fields)
            for fields in _ENTRY.iter_unpack(
                data[_HEADER.size:_HEADER.size + MAX_ENTRIES * _ENTRY.size])
        )
        return cls(signature, unknown1, parts, unknown2, pad, entries)

    @property
    def partitions(self) -> tuple[PhoenixEntry, ...]:
        """The entries that the table declares as in use."""
        return self.entries[:self.parts]


def _skip(stream: BinaryIO, count: int) -> None:
    try:
        stream.seek(count, io.SEEK_CUR)
    except (OSError, AttributeError, io.UnsupportedOperation):
        stream.read(count)


def read_table(stream: BinaryIO) -> PhoenixTable:
    """Skip 0x1C00 bytes from the current position and parse the table there."""
    _skip(stream, TABLE_OFFSET)
    return PhoenixTable.parse(stream.read(TABLE_SIZE))


def format_header(table: PhoenixTable) -> str:
    """Render the table header fields."""
    return (
        f"????  : {table.unknown1:08x}\n"
        f"Parts : {table.parts}\n"
        f"????  : {table.unknown2:08x}\n"
        f"pad   : {table.pad.hex()}\n"
        "\n"
    )


def format_entry(index: int, entry: PhoenixEntry, verbose: int) -> str:
    """Render one partition entry; the signature shows when verbose or unusual."""
    lines = [
        f"part {index}:",
        f"\tstart: 0x{(entry.start * SECTOR_SIZE) & 0xFFFFFFFF:08x} "
        f"({entry.start} / 0x{entry.start:08x})",
        f"\tsize : {entry.size}",
        f"\t?????: {entry.unknown:08x}",
    ]
    if verbose > 1 or entry.sig != ENTRY_SIGNATURE:
        lines.append(f"\tsig??: {entry.sig:08x}")
    return "\n".join(lines) + "\n\n"


_PATTERN_RE = re.compile(r"%(%|0?\d*d)")


def output_name(pattern: str, part: int) -> str:
    """Expand ``%d`` (optionally width-padded) and ``%%`` in ``pattern``."""
    def expand(match: "re.Match[str]") -> str:
        spec = match.group(1)
        return "%" if spec == "%" else ("%" + spec) % part

    return _PATTERN_RE.sub(expand, pattern)


def save_part(table: PhoenixTable, part: int, dest: str, stream: BinaryIO) -> str:
    """Copy partition ``part`` of the image in ``stream`` to a file.

    ``dest`` is a name pattern (see :func:`output_name`); ``-`` writes to
    standard output. Returns the name written to.
    """
    name = output_name(dest, part)
    if part < 0 or part > table.parts or part >= len(table.entries):
        raise PhoenixError("Part index out of range")
    entry = table.entries[part]
    try:
        stream.seek(entry.start * SECTOR_SIZE, io.SEEK_SET)
        data = stream.read(entry.size)
    except (OSError, io.UnsupportedOperation) as exc:
        raise PhoenixError(f"cannot read part {part}: {exc}") from exc
    if len(data) != entry.size:
        raise PhoenixError(f"part {part} is truncated")
    if name == "-":
        sys.stdout.buffer.write(data)
        sys.stdout.flush()
        return name
    try:
        with open(name, "wb") as out:
            out.write(data)
    except OSError as exc:
        raise PhoenixError(f"{name}: {exc.strerror}") from exc
    return name


def _usage() -> str:
    return (
        "phoenix-info\n"
        "\n"
        "Usage: phoenix-info [options] [phoenix_image]\n"
        "\t-v\tverbose\n"
        "\t-q\tquiet\n"
        "\t-p N\tpart number\n"
        "\t-o X\tdestination directory, file or pattern (%d for part number)\n"
        "\t-s\tsave all parts\n"
    )


def _atoi(text: str) -> int:
    match = re.match(r"\s*([+-]?\d+)", text)
    return int(match.group(1)) if match else 0


def _destination(dest: str, part: int) -> str:
    if "%" in dest:
        return dest
    base = dest or "./"
    if base.endswith("/") or part == 0:
        if base.endswith("/"):
            base = base[:-1]
        return f"{base}/%d.img"
    return base


def _process(stream: BinaryIO, verbose: int, save_parts: bool, part: int,
             dest: str) -> int:
    try:
        table = read_table(stream)
    except PhoenixError:
        print("ERROR: Not a phoenix image", file=sys.stderr)
        return 1
    if verbose > 1:
        sys.stdout.write(format_header(table))
    for index, entry in enumerate(table.partitions):
        selected = part == -1 or part == index
        if verbose and selected:
            sys.stdout.write(format_entry(index, entry, verbose))
        if save_parts and selected:
            sys.stdout.flush()
            try:
                save_part(table, index, dest, stream)
            except PhoenixError as exc:
                print(f"ERROR: {exc}", file=sys.stderr)
    sys.stdout.flush()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line entry point; returns the process exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        options, rest = getopt.getopt(args, "vqso:p:")
    except getopt.GetoptError:
        sys.stdout.write(_usage())
        return 1

    verbose = 1
    save_parts = False
    part = -1
    dest = "%d.img"
    for opt, value in options:
        if opt == "-v":
            verbose += 1
        elif opt == "-q":
            if verbose:
                verbose -= 1
        elif opt == "-o":
            dest = value
            save_parts = True
        elif opt == "-p":
            save_parts = True
            part = _atoi(value)
        elif opt == "-s":
            save_parts = True

    if save_parts:
        dest = _destination(dest, part)
    if len(rest) > 1:
        sys.stdout.write(_usage())
        return 1

    if not rest:
        return _process(sys.stdin.buffer, verbose, save_parts, part, dest)
    try:
        stream = open(rest[0], "rb")
    except OSError as exc:
        print(f"ERROR: {rest[0]}: {exc.strerror}", file=sys.stderr)
        return 1
    with stream:
        return _process(stream, verbose, save_parts, part, dest)


if __name__ == "__main__":
    sys.exit(main())