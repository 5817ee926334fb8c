"""Raw NAND image builder for the sunxi NAND controller.

Lays out data pages with BCH parity in the OOB area, optionally
scrambles them, and handles the special boot0 layout understood by the BROM.
"""

from __future__ import annotations

import getopt
import io
import os
import re
import sys
from dataclasses import dataclass
from functools import lru_cache
from typing import BinaryIO, Optional, Sequence

from sunxi_tools.bch import BCH, BCHError

__all__ = [
    "BCH_PRIMITIVE_POLY",
    "NandImageError",
    "ImageInfo",
    "swap_bits",
    "lfsr_step",
    "scramble",
    "check_image_info",
    "write_page",
    "build_image",
    "create_image",
    "parse_args",
    "main",
]

BCH_PRIMITIVE_POLY = 0x5803
BCH_FIELD_ORDER = 14

VALID_ECC_STRENGTHS = (16, 24, 28, 32, 40, 48, 56, 60, 64)
VALID_ECC_STEP_SIZES = (512, 1024)

_FAILURE_STATUS = 255

_DEFAULT_SCRAMBLER_SEEDS = (
    0x2B75, 0x0BD0, 0x5CA3, 0x62D1, 0x1C93, 0x07E9, 0x2162, 0x3A72,
    0x0D67, 0x67F9, 0x1BE7, 0x077D, 0x032F, 0x0DAC, 0x2716, 0x2436,
    0x7922, 0x1510, 0x3860, 0x5287, 0x480F, 0x4252, 0x1789, 0x5A2D,
    0x2A49, 0x5E10, 0x437F, 0x4B4E, 0x2F45, 0x216E, 0x5CB7, 0x7130,
    0x2A3F, 0x60E4, 0x4DC9, 0x0EF0, 0x0F52, 0x1BB9, 0x6211, 0x7A56,
    0x226D, 0x4EA7, 0x6F36, 0x3692, 0x38BF, 0x0C62, 0x05EB, 0x4C55,
    0x60F4, 0x728C, 0x3B6F, 0x2037, 0x7F69, 0x0936, 0x651A, 0x4CEB,
    0x6218, 0x79F3, 0x383F, 0x18D9, 0x4F05, 0x5C82, 0x2912, 0x6F17,
    0x6856, 0x5938, 0x1007, 0x61AB, 0x3E7F, 0x57C2, 0x542F, 0x4F62,
    0x7454, 0x2EAC, 0x7739, 0x42D4, 0x2F90, 0x435A, 0x2E52, 0x2064,
    0x637C, 0x66AD, 0x2C90, 0x0BAD, 0x759C, 0x0029, 0x0986, 0x7126,
    0x1CA7, 0x1605, 0x386A, 0x27F5, 0x1380, 0x6D75, 0x24C3, 0x0F8E,
    0x2B7A, 0x1418, 0x1FD1, 0x7DC1, 0x2D8E, 0x43AF, 0x2267, 0x7DA3,
    0x4E3D, 0x1338, 0x50DB, 0x454D, 0x764D, 0x40A3, 0x42E6, 0x262B,
    0x2D2E, 0x1AEA, 0x2E17, 0x173D, 0x3A6E, 0x71BF, 0x25F9, 0x0A5D,
    0x7C57, 0x0FBE, 0x46CE, 0x4939, 0x6B17, 0x37BB, 0x3E91, 0x76DB,
)

_BROM_SCRAMBLER_SEED = 0x4A80

_BIT_REVERSE = bytes(int(f"{b:08b}"[::-1], 2) for b in range(256))

_HELP = """\
sunxi-nand-image-builder

Usage: sunxi-nand-image-builder [OPTIONS] source-image output-image

Creates a raw NAND image that can be read by the sunxi NAND controller.

-h               --help               Display this help and exit
-c <str>/<step>  --ecc=<str>/<step>   ECC config (strength/step-size)
-p <size>        --page=<size>        Page size
-o <size>        --oob=<size>         OOB size
-u <size>        --usable=<size>      Usable page size
-e <size>        --eraseblock=<size>  Erase block size
-b               --boot0              Build a boot0 image.
-s               --scramble           Scramble data
-a <offset>      --address=<offset>   Where the image will be programmed.

Notes:
The values passed to this tool come from the NAND datasheet.

The NAND controller only supports the following ECC configs
  Valid ECC strengths: 16, 24, 28, 32, 40, 48, 56, 60 and 64
  Valid ECC step size: 512 and 1024

When building a boot0 image:
  --usable should be assigned the 'Hardware page' value
  --ecc should be assigned the 'ECC capacity'/'ECC page' values
  --usable should be smaller than --page

The --address option is only required for non-boot0 images that are
meant to be programmed at a non eraseblock aligned offset.

Examples:
  A normal image for a NAND with 16k pages, 1280 OOB bytes, 4M
  eraseblocks, scrambling and 40bits/1024bytes ECC:
    sunxi-nand-image-builder -p 16384 -o 1280 -e 0x400000 -s -c 40/1024
  A boot0 image for the same NAND:
    sunxi-nand-image-builder -p 16384 -o 1280 -e 0x400000 -s -b -u 4096 -c 64/1024
"""


class NandImageError(Exception):
    """Raised for invalid image parameters or failures while building."""


class _HelpRequested(Exception):
    """Raised by the argument parser when help output was asked for."""


@dataclass
class ImageInfo:
    """Geometry and options of the NAND image to build."""

    ecc_strength: int = 0
    ecc_step_size: int = 0
    page_size: int = 0
    oob_size: int = 0
    usable_page_size: int = 0
    eraseblock_size: int = 0
    scramble: bool = False
    boot0: bool = False
    offset: int = 0
    source: Optional[str] = None
    dest: Optional[str] = None

    def ecc_bytes(self) -> int:
        """Parity bytes stored per ECC step (rounded up to an even count)."""
        count = (self.ecc_strength * BCH_FIELD_ORDER + 7) // 8
        if count % 2:
            count += 1
        return count


def swap_bits(data: bytes) -> bytes:
    """Return ``data`` with the bit order of every byte reversed."""
    return bytes(data).translate(_BIT_REVERSE)


def lfsr_step(state: int, count: int) -> int:
    """Advance the 15-bit scrambler LFSR by ``count`` steps."""
    state &= 0x7FFF
    for _ in range(count):
        feedback = (state ^ (state >> 1)) & 1
        state = ((state >> 1) | (feedback << 14)) & 0x7FFF
    return state


def scramble(info: ImageInfo, page: int, data: bytes) -> bytes:
    """Return ``data`` XORed with the scrambler stream for ``page``.

    Boot0 images are always scrambled with the BROM seed; other images are
    only scrambled when ``info.scramble`` is set. Applying it twice restores
    the input.
    """
    data = bytes(data)
    if info.boot0:
        state = _BROM_SCRAMBLER_SEED
    else:
        if not info.scramble:
            return data
        if info.page_size <= 0:
            raise NandImageError("page size must be positive")
        seedmod = min(info.eraseblock_size // info.page_size,
                      len(_DEFAULT_SCRAMBLER_SEEDS))
        if seedmod <= 0:
            raise NandImageError("erase block is smaller than a page")
        state = _DEFAULT_SCRAMBLER_SEEDS[page % seedmod]

    state = lfsr_step(state, 15)
    out = bytearray()
    for byte in data:
        out.append(byte ^ (state & 0xFF))
        state = lfsr_step(state, 8)
    return bytes(out)


def check_image_info(info: ImageInfo) -> None:
    """Raise :class:`NandImageError` if ``info`` describes an unusable layout."""
    if not info.page_size:
        raise NandImageError("--page is missing")
    if not info.eraseblock_size:
        raise NandImageError("--eraseblock is missing")
    if info.ecc_step_size not in VALID_ECC_STEP_SIZES:
        raise NandImageError(f"Invalid ECC step argument: {info.ecc_step_size}")
    if info.ecc_strength not in VALID_ECC_STRENGTHS:
        raise NandImageError(f"Invalid ECC strength argument: {info.ecc_strength}")

    eccbytes = info.ecc_bytes() + 4
    eccsteps = info.usable_page_size // info.ecc_step_size
    if (info.page_size + info.oob_size
            < info.usable_page_size + eccsteps * eccbytes):
        raise NandImageError(
            "ECC bytes do not fit in the NAND page, choose a weaker ECC")


def _fill_from(buffer: bytearray, start: int, stream: BinaryIO, size: int) -> None:
    """Overwrite ``buffer[start:]`` with up to ``size`` bytes read from ``stream``."""
    chunk = stream.read(size) if size > 0 else b""
    buffer[start:start + len(chunk)] = chunk


def write_page(info: ImageInfo, src: BinaryIO, rnd: BinaryIO, dst: BinaryIO,
               bch: BCH, page: int) -> bool:
    """Encode one NAND page read from ``src`` and write it to ``dst``.

    ``src`` must be seekable. ``rnd`` supplies filler bytes for scrambled
    boot0 pages. Returns False, writing nothing, once ``src`` is exhausted.
    """
    page_len = info.page_size + info.oob_size
    step = info.ecc_step_size
    steps = info.usable_page_size // step
    eccbytes = info.ecc_bytes()

    chunk = src.read(info.usable_page_size)
    if not chunk:
        return False

    out = bytearray(b"\xff" * page_len)
    out[:len(chunk)] = chunk

    # Empty pages are left erased.
    if chunk == b"\xff" * len(chunk):
        dst.write(out)
        return True

    src.seek(-len(chunk), io.SEEK_CUR)

    if info.scramble:
        if info.boot0:
            offs = steps * (step + eccbytes + 4)
            _fill_from(out, offs, rnd, page_len - offs)
        else:
            offs = info.page_size + steps * (eccbytes + 4)
            out[offs:] = scramble(info, page, b"\xff" * (page_len - offs))

    for i in range(steps):
        if info.boot0:
            data_offs = i * (step + eccbytes + 4)
            ecc_offs = data_offs + step + 4
        else:
            data_offs = i * step
            ecc_offs = info.page_size + 4 + i * (eccbytes + 4)

        block = bytearray(b"\xff" * (step + 4 + eccbytes))
        data = src.read(step)
        block[:len(data)] = data
        if len(data) < step and info.scramble and info.boot0:
            _fill_from(block, len(data), rnd, step - len(data))

        parity = bch.encode(swap_bits(block[:step + 4]))
        block[step + 4:] = swap_bits(parity.ljust(eccbytes, b"\0"))
        block = bytearray(scramble(info, page, block))

        out[data_offs:data_offs + step] = block[:step]
        out[ecc_offs - 4:ecc_offs + eccbytes] = block[step:]

    # Keep the bad block marker erased.
    out[info.page_size:info.page_size + 2] = b"\xff\xff"
    dst.write(out)
    return True


@lru_cache(maxsize=None)
def _make_bch(ecc_strength: int) -> BCH:
    try:
        return BCH(BCH_FIELD_ORDER, ecc_strength, BCH_PRIMITIVE_POLY)
    except BCHError as exc:
        raise NandImageError("Failed to init the BCH engine") from exc


def build_image(info: ImageInfo, src: BinaryIO, dst: BinaryIO,
                rnd: BinaryIO) -> int:
    """Write the whole of ``src`` as NAND pages to ``dst``; return the page count."""
    bch = _make_bch(info.ecc_strength)
    page = info.offset // info.page_size
    written = 0
    while write_page(info, src, rnd, dst, bch, page):
        page += 1
        written += 1
    return written


class _RandomSource:
    """Readable stream of operating-system random bytes."""

    def read(self, size: int = -1) -> bytes:
        return os.urandom(max(size, 0))


def create_image(info: ImageInfo) -> int:
    """Build the image from ``info.source`` into ``info.dest``; return the page count."""
    _make_bch(info.ecc_strength)
    if info.source is None or info.dest is None:
        raise NandImageError("source and destination files are required")
    try:
        src = open(info.source, "rb")
    except OSError as exc:
        raise NandImageError(f"Failed to open source file ({info.source})") from exc
    with src:
        try:
            dst = open(info.dest, "wb")
        except OSError as exc:
            raise NandImageError(f"Failed to open dest file ({info.dest})") from exc
        with dst:
            return build_image(info, src, dst, _RandomSource())


_INT_RE = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")


def _strtol(text: str) -> tuple[int, str]:
    """Parse a leading C-style integer (decimal, 0x hex or 0 octal)."""
    match = _INT_RE.match(text)
    if not match:
        return 0, text
    sign, digits = match.groups()
    if digits[:2].lower() == "0x":
        value = int(digits, 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits, 10)
    return (-value if sign == "-" else value), text[match.end():]


def parse_args(argv: Sequence[str]) -> ImageInfo:
    """Turn command-line arguments into an :class:`ImageInfo`."""
    long_options = ["help", "ecc=", "page=", "oob=", "usable=",
                    "eraseblock=", "boot0", "scramble", "address="]
    try:
        options, rest = getopt.gnu_getopt(list(argv), "c:p:o:u:e:ba:sh",
                                          long_options)
    except getopt.GetoptError as exc:
        raise NandImageError(str(exc)) from exc

    info = ImageInfo()
    for opt, value in options:
        if opt in ("-h", "--help"):
            raise _HelpRequested()
        if opt in ("-s", "--scramble"):
            info.scramble = True
        elif opt in ("-b", "--boot0"):
            info.boot0 = True
        elif opt in ("-c", "--ecc"):
            info.ecc_strength, remainder = _strtol(value)
            info.ecc_step_size = _strtol(remainder[1:])[0]
        elif opt in ("-p", "--page"):
            info.page_size = _strtol(value)[0]
        elif opt in ("-o", "--oob"):
            info.oob_size = _strtol(value)[0]
        elif opt in ("-u", "--usable"):
            info.usable_page_size = _strtol(value)[0]
        elif opt in ("-e", "--eraseblock"):
            info.eraseblock_size = _strtol(value)[0]
        elif opt in ("-a", "--address"):
            info.offset = _strtol(value)[0]

    if len(rest) != 2:
        raise NandImageError("expected a source image and an output image")
    info.source, info.dest = rest

    if not info.boot0:
        info.usable_page_size = info.page_size
    elif not info.usable_page_size:
        if info.page_size > 8192:
            info.usable_page_size = 8192
        elif info.page_size > 4096:
            info.usable_page_size = 4096
        else:
            info.usable_page_size = 1024
    return info


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line entry point; returns the process exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        info = parse_args(args)
        check_image_info(info)
    except _HelpRequested:
        sys.stdout.write(_HELP)
        return 0
    except NandImageError as exc:
        print(exc, file=sys.stderr)
        sys.stderr.write(_HELP)
        return _FAILURE_STATUS

    try:
        create_image(info)
    except NandImageError as exc:
        print(exc, file=sys.stderr)
        return _FAILURE_STATUS
    return 0


if __name__ == "__main__":
    sys.exit(main())