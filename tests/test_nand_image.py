import io

import pytest

from sunxi_tools.bch import BCH
from sunxi_tools.nand_image import (
    BCH_PRIMITIVE_POLY,
    ImageInfo,
    NandImageError,
    build_image,
    check_image_info,
    create_image,
    lfsr_step,
    main,
    parse_args,
    scramble,
    swap_bits,
    write_page,
)


@pytest.fixture(scope="module")
def bch16():
    return BCH(14, 16, BCH_PRIMITIVE_POLY)


@pytest.fixture(scope="module")
def bch16_boot():
    return BCH(14, 16, BCH_PRIMITIVE_POLY)


def _info(**overrides):
    params = dict(
        ecc_strength=16,
        ecc_step_size=512,
        page_size=1024,
        oob_size=64,
        usable_page_size=1024,
        eraseblock_size=1024 * 64,
    )
    params.update(overrides)
    return ImageInfo(**params)


def _boot0_info(**overrides):
    params = dict(
        ecc_strength=16,
        ecc_step_size=1024,
        page_size=2048,
        oob_size=64,
        usable_page_size=1024,
        eraseblock_size=2048 * 64,
        boot0=True,
        scramble=True,
    )
    params.update(overrides)
    return ImageInfo(**params)


def _sample(size):
    return bytes((i * 7 + 3) % 256 for i in range(size))


# swap_bits


def test_swap_bits_single_bit():
    assert swap_bits(bytes([0x01])) == bytes([0x80])


def test_swap_bits_round_trip():
    data = _sample(300)
    assert swap_bits(swap_bits(data)) == data
    assert len(swap_bits(data)) == len(data)


def test_swap_bits_preserves_popcount():
    data = _sample(64)
    swapped = swap_bits(data)
    assert [bin(b).count("1") for b in swapped] == [bin(b).count("1") for b in data]


# lfsr_step


def test_lfsr_zero_steps_masks_state():
    assert lfsr_step(0x2B75, 0) == 0x2B75
    assert lfsr_step(0xFFFF, 0) == 0x7FFF


def test_lfsr_zero_state_is_fixed():
    assert lfsr_step(0, 100) == 0


@pytest.mark.parametrize("seed", [0x2B75, 0x4A80, 0x0001])
def test_lfsr_composes(seed):
    assert lfsr_step(lfsr_step(seed, 15), 8) == lfsr_step(seed, 23)
    assert 0 <= lfsr_step(seed, 1000) < 0x8000


def test_lfsr_is_maximal_length():
    assert lfsr_step(0x4A80, 0x7FFF) == 0x4A80


# ImageInfo.ecc_bytes


def test_ecc_bytes_pinned():
    assert _info(ecc_strength=16).ecc_bytes() == 28


@pytest.mark.parametrize("strength", [16, 24, 28, 32, 40, 48, 56, 60, 64])
def test_ecc_bytes_even_and_large_enough(strength):
    count = _info(ecc_strength=strength).ecc_bytes()
    assert count % 2 == 0
    assert count * 8 >= strength * 14
    assert count == BCH(14, strength, BCH_PRIMITIVE_POLY).ecc_bytes + (
        BCH(14, strength, BCH_PRIMITIVE_POLY).ecc_bytes % 2
    ) or count >= strength * 14 // 8


# scramble


def test_scramble_disabled_is_identity():
    data = _sample(100)
    assert scramble(_info(scramble=False), 3, data) == data


def test_scramble_is_involution():
    info = _info(scramble=True)
    data = _sample(200)
    scrambled = scramble(info, 5, data)
    assert scrambled != data
    assert scramble(info, 5, scrambled) == data


def test_scramble_seed_repeats_per_eraseblock():
    info = _info(scramble=True, eraseblock_size=1024 * 4)
    data = bytes(64)
    assert scramble(info, 1, data) == scramble(info, 5, data)
    assert scramble(info, 1, data) != scramble(info, 2, data)


def test_scramble_boot0_ignores_flag_and_page():
    data = bytes(64)
    on = scramble(_boot0_info(scramble=False), 0, data)
    assert on != data
    assert on == scramble(_boot0_info(scramble=True), 9, data)


def test_scramble_stream_prefix_consistent():
    info = _info(scramble=True)
    data = _sample(128)
    assert scramble(info, 2, data)[:40] == scramble(info, 2, data[:40])


def test_scramble_eraseblock_smaller_than_page():
    with pytest.raises(NandImageError):
        scramble(_info(scramble=True, eraseblock_size=512), 0, b"\x00")


# check_image_info


def test_check_missing_page():
    with pytest.raises(NandImageError, match="--page is missing"):
        check_image_info(_info(page_size=0))


def test_check_missing_eraseblock():
    with pytest.raises(NandImageError, match="--eraseblock is missing"):
        check_image_info(_info(eraseblock_size=0))


def test_check_invalid_step():
    with pytest.raises(NandImageError, match="Invalid ECC step"):
        check_image_info(_info(ecc_step_size=256))


def test_check_invalid_strength():
    with pytest.raises(NandImageError, match="Invalid ECC strength"):
        check_image_info(_info(ecc_strength=20))


def test_check_ecc_does_not_fit():
    with pytest.raises(NandImageError, match="do not fit"):
        check_image_info(_info(page_size=2048, usable_page_size=2048, ecc_strength=64))


# parse_args


def test_parse_args_example():
    info = parse_args(["-p", "16384", "-o", "1280", "-e", "0x400000", "-s",
                       "-c", "40/1024", "in.bin", "out.bin"])
    assert info.page_size == 16384
    assert info.oob_size == 1280
    assert info.eraseblock_size == 0x400000
    assert info.scramble is True
    assert info.boot0 is False
    assert (info.ecc_strength, info.ecc_step_size) == (40, 1024)
    assert info.usable_page_size == info.page_size
    assert (info.source, info.dest) == ("in.bin", "out.bin")
    check_image_info(info)


def test_parse_args_long_options():
    info = parse_args(["--page=0x800", "--oob=64", "--eraseblock=131072",
                       "--ecc=16/512", "--address=4096", "a", "b"])
    assert info.page_size == 0x800
    assert info.offset == 4096
    assert info.ecc_step_size == 512


@pytest.mark.parametrize(
    "page, usable",
    [(16384, 8192), (8192, 4096), (2048, 1024)],
)
def test_parse_args_boot0_usable_defaults(page, usable):
    info = parse_args(["-b", "-p", str(page), "-e", "65536", "a", "b"])
    assert info.usable_page_size == usable


def test_parse_args_boot0_explicit_usable():
    info = parse_args(["-b", "-p", "16384", "-u", "4096", "a", "b"])
    assert info.usable_page_size == 4096


def test_parse_args_requires_two_files():
    with pytest.raises(NandImageError):
        parse_args(["-p", "2048", "only-one"])


def test_parse_args_unknown_option():
    with pytest.raises(NandImageError):
        parse_args(["-z", "a", "b"])


# write_page / build_image


def _codeword_ok(bch, block, parity):
    return bch.encode(swap_bits(block) + swap_bits(parity)) == bytes(bch.ecc_bytes)


def test_write_page_plain_layout(bch16):
    info = _info()
    data = _sample(1024)
    src = io.BytesIO(data)
    dst = io.BytesIO()
    assert write_page(info, src, io.BytesIO(), dst, bch16, 0) is True
    out = dst.getvalue()
    assert len(out) == info.page_size + info.oob_size
    assert src.tell() == info.usable_page_size
    eccb = info.ecc_bytes()
    step = info.ecc_step_size
    for i in range(2):
        chunk = data[i * step:(i + 1) * step]
        assert out[i * step:(i + 1) * step] == chunk
        ecc_offs = info.page_size + 4 + i * (eccb + 4)
        assert out[ecc_offs - 4:ecc_offs] == b"\xff" * 4
        parity = out[ecc_offs:ecc_offs + eccb]
        assert _codeword_ok(bch16, chunk + b"\xff" * 4, parity)


def test_write_page_empty_source(bch16):
    dst = io.BytesIO()
    assert write_page(_info(), io.BytesIO(b""), io.BytesIO(), dst, bch16, 0) is False
    assert dst.getvalue() == b""


def test_write_page_erased_page_left_blank(bch16):
    info = _info(scramble=True)
    dst = io.BytesIO()
    assert write_page(info, io.BytesIO(b"\xff" * 1024), io.BytesIO(), dst, bch16, 0)
    assert dst.getvalue() == b"\xff" * (info.page_size + info.oob_size)


def test_write_page_scrambled(bch16):
    info = _info(scramble=True)
    data = _sample(1024)
    dst = io.BytesIO()
    write_page(info, io.BytesIO(data), io.BytesIO(), dst, bch16, 3)
    out = dst.getvalue()
    eccb = info.ecc_bytes()
    assert scramble(info, 3, out[:512]) == data[:512]
    assert out[info.page_size:info.page_size + 2] == b"\xff\xff"
    ecc_offs = info.page_size + 4 + (eccb + 4)
    plain = scramble(info, 3, out[512:1024] + out[ecc_offs - 4:ecc_offs + eccb])
    assert plain[:512] == data[512:]
    assert plain[512:516] == b"\xff" * 4
    assert _codeword_ok(bch16, plain[:516], plain[516:])


def test_write_page_boot0_layout(bch16_boot):
    info = _boot0_info()
    data = _sample(1024)
    filler = bytes(range(256)) * 5
    dst = io.BytesIO()
    write_page(info, io.BytesIO(data), io.BytesIO(filler), dst, bch16_boot, 7)
    out = dst.getvalue()
    offs = info.ecc_step_size + info.ecc_bytes() + 4
    assert len(out) == info.page_size + info.oob_size
    assert out[offs:info.page_size] == filler[:info.page_size - offs]
    assert out[info.page_size:info.page_size + 2] == b"\xff\xff"
    plain = scramble(info, 0, out[:offs])
    assert plain[:1024] == data
    assert plain[1024:1028] == b"\xff" * 4
    assert _codeword_ok(bch16_boot, plain[:1028], plain[1028:])


def test_write_page_boot0_short_data_padded_from_random(bch16_boot):
    info = _boot0_info()
    data = _sample(1000)
    filler = bytes(range(256)) * 5
    dst = io.BytesIO()
    write_page(info, io.BytesIO(data), io.BytesIO(filler), dst, bch16_boot, 0)
    out = dst.getvalue()
    offs = info.ecc_step_size + info.ecc_bytes() + 4
    unused = info.page_size + info.oob_size - offs
    plain = scramble(info, 0, out[:offs])
    assert plain[:1000] == data
    assert plain[1000:1024] == filler[unused:unused + 24]


def test_build_image_empty():
    dst = io.BytesIO()
    assert build_image(_info(), io.BytesIO(b""), dst, io.BytesIO()) == 0
    assert dst.getvalue() == b""


def test_build_image_short_last_page():
    info = _info()
    data = _sample(1500)
    dst = io.BytesIO()
    pages = build_image(info, io.BytesIO(data), dst, io.BytesIO())
    page_len = info.page_size + info.oob_size
    out = dst.getvalue()
    assert pages == 2
    assert len(out) == 2 * page_len
    assert out[:1024] == data[:1024]
    tail = len(data) - 1024
    assert out[page_len:page_len + tail] == data[1024:]
    assert out[page_len + tail:page_len + 512] == b"\xff" * (512 - tail)


# create_image / main


def test_create_image_files(tmp_path):
    src = tmp_path / "in.bin"
    dst = tmp_path / "out.bin"
    src.write_bytes(_sample(3000))
    info = _info(source=str(src), dest=str(dst))
    assert create_image(info) == 3
    assert dst.stat().st_size == 3 * (info.page_size + info.oob_size)


def test_create_image_missing_source(tmp_path):
    info = _info(source=str(tmp_path / "missing"), dest=str(tmp_path / "out"))
    with pytest.raises(NandImageError, match="Failed to open source file"):
        create_image(info)


def test_main_end_to_end(tmp_path):
    src = tmp_path / "in.bin"
    dst = tmp_path / "out.bin"
    data = _sample(1024)
    src.write_bytes(data)
    status = main(["-p", "1024", "-o", "64", "-e", "65536", "-c", "16/512",
                   str(src), str(dst)])
    assert status == 0
    out = dst.read_bytes()
    assert len(out) == 1024 + 64
    assert out[:1024] == data


def test_main_help(capsys):
    assert main(["-h"]) == 0
    assert "Usage" in capsys.readouterr().out


def test_main_usage_error(capsys):
    assert main(["-p", "2048"]) == 255
    assert "Usage" in capsys.readouterr().err


def test_main_invalid_config(tmp_path, capsys):
    status = main(["-p", "1024", "-o", "64", "-e", "65536", "-c", "20/512",
                   str(tmp_path / "a"), str(tmp_path / "b")])
    assert status == 255
    assert "Invalid ECC strength" in capsys.readouterr().err