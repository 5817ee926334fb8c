import io
import struct

import pytest

from sunxi_tools.phoenix import (
    ENTRY_SIGNATURE,
    MAX_ENTRIES,
    SIGNATURE,
    TABLE_OFFSET,
    TABLE_SIZE,
    PhoenixEntry,
    PhoenixError,
    PhoenixTable,
    format_entry,
    format_header,
    main,
    output_name,
    read_table,
    save_part,
)

PART0 = b"hello"
PART1 = b"abc"


def _table_bytes(entries, parts=None, signature=SIGNATURE):
    parts = len(entries) if parts is None else parts
    header = struct.pack("<16sIHH8s", signature, 0x00200100, parts, 1,
                         bytes(range(8)))
    body = b"".join(struct.pack("<IIII", *e) for e in entries)
    data = header + body
    return data + b"\0" * (TABLE_SIZE - len(data))


def _image():
    entries = [
        (0x10, len(PART0), 0, ENTRY_SIGNATURE),
        (0x11, len(PART1), 7, 0x12345678),
    ]
    data = bytearray(b"\0" * TABLE_OFFSET + _table_bytes(entries))
    data += PART0 + b"\0" * (0x200 - len(PART0)) + PART1
    return bytes(data)


class _NoSeek:
    def __init__(self, data):
        self._buf = io.BytesIO(data)

    def read(self, size=-1):
        return self._buf.read(size)


def test_parse_reads_header_and_entries():
    table = PhoenixTable.parse(_table_bytes([(5, 100, 2, ENTRY_SIGNATURE)]))
    assert table.signature == SIGNATURE
    assert table.parts == 1
    assert table.unknown1 == 0x00200100
    assert table.pad == bytes(range(8))
    assert len(table.entries) == MAX_ENTRIES
    assert table.entries[0] == PhoenixEntry(5, 100, 2, ENTRY_SIGNATURE)
    assert table.partitions == (PhoenixEntry(5, 100, 2, ENTRY_SIGNATURE),)


def test_parse_rejects_bad_signature():
    with pytest.raises(PhoenixError):
        PhoenixTable.parse(_table_bytes([], signature=b"NOT_A_PHOENIX_IM"))


def test_parse_rejects_short_data():
    with pytest.raises(PhoenixError):
        PhoenixTable.parse(_table_bytes([])[:100])


def test_read_table_skips_to_offset():
    table = read_table(io.BytesIO(_image()))
    assert table.parts == 2
    assert table.entries[1].size == len(PART1)


def test_read_table_from_unseekable_stream():
    table = read_table(_NoSeek(_image()))
    assert table.entries[0].start == 0x10


def test_format_header_lists_part_count():
    text = format_header(read_table(io.BytesIO(_image())))
    assert "Parts : 2\n" in text
    assert "pad   : 0001020304050607\n" in text


def test_format_entry_hides_normal_signature():
    entry = PhoenixEntry(0x10, 5, 0, ENTRY_SIGNATURE)
    quiet = format_entry(0, entry, 1)
    assert quiet.startswith("part 0:\n")
    assert "sig??" not in quiet
    assert "\tsize : 5\n" in quiet
    assert "sig??" in format_entry(0, entry, 2)


def test_format_entry_shows_unusual_signature():
    entry = PhoenixEntry(1, 2, 3, 0x12345678)
    assert "\tsig??: 12345678\n" in format_entry(4, entry, 1)


@pytest.mark.parametrize(
    "pattern,part,expected",
    [("%d.img", 3, "3.img"), ("out/part%02d.bin", 3, "out/part03.bin"),
     ("100%%_%d", 1, "100%_1"), ("fixed.img", 9, "fixed.img")],
)
def test_output_name(pattern, part, expected):
    assert output_name(pattern, part) == expected


def test_save_part_writes_partition(tmp_path):
    stream = io.BytesIO(_image())
    table = read_table(stream)
    name = save_part(table, 1, str(tmp_path / "p%d.img"), stream)
    assert name == str(tmp_path / "p1.img")
    assert (tmp_path / "p1.img").read_bytes() == PART1


def test_save_part_out_of_range(tmp_path):
    stream = io.BytesIO(_image())
    table = read_table(stream)
    with pytest.raises(PhoenixError):
        save_part(table, 3, str(tmp_path / "%d.img"), stream)


def test_save_part_truncated_image(tmp_path):
    data = _image()[:-1]
    stream = io.BytesIO(data)
    table = read_table(stream)
    with pytest.raises(PhoenixError):
        save_part(table, 1, str(tmp_path / "%d.img"), stream)


def test_main_saves_all_parts(tmp_path):
    image = tmp_path / "card.img"
    image.write_bytes(_image())
    status = main(["-q", "-o", str(tmp_path / "%d.out"), str(image)])
    assert status == 0
    assert (tmp_path / "0.out").read_bytes() == PART0
    assert (tmp_path / "1.out").read_bytes() == PART1


def test_main_directory_destination(tmp_path):
    image = tmp_path / "card.img"
    image.write_bytes(_image())
    outdir = tmp_path / "parts"
    outdir.mkdir()
    assert main(["-q", "-s", "-o", str(outdir) + "/", str(image)]) == 0
    assert (outdir / "0.img").read_bytes() == PART0


def test_main_single_part(tmp_path):
    image = tmp_path / "card.img"
    image.write_bytes(_image())
    assert main(["-q", "-p", "1", "-o", str(tmp_path / "x%d"), str(image)]) == 0
    assert (tmp_path / "x1").read_bytes() == PART1
    assert not (tmp_path / "x0").exists()


def test_main_prints_entries(tmp_path, capsys):
    image = tmp_path / "card.img"
    image.write_bytes(_image())
    assert main([str(image)]) == 0
    out = capsys.readouterr().out
    assert "part 0:\n" in out
    assert "part 1:\n" in out
    assert "Parts :" not in out


def test_main_rejects_non_phoenix(tmp_path, capsys):
    image = tmp_path / "bad.img"
    image.write_bytes(b"\0" * (TABLE_OFFSET + TABLE_SIZE))
    assert main([str(image)]) == 1
    assert "Not a phoenix image" in capsys.readouterr().err


def test_main_too_many_arguments(capsys):
    assert main(["a", "b"]) == 1
    assert "Usage:" in capsys.readouterr().out


def test_main_unknown_option(capsys):
    assert main(["-z"]) == 1
    assert "Usage:" in capsys.readouterr().out