# sunxi-tools

Command-line tools and a small library for working with Allwinner (sunxi)
system-on-chips: building raw NAND images with BCH ECC, reading the DRAM
configuration from controller registers, and inspecting Phoenix card images.

## Installation

```
pip install .
```

For running the test suite:

```
pip install .[test]
pytest
```

## Commands

### sunxi-nand-image-builder

Creates a raw NAND image that the sunxi NAND controller can read. Each page
gets BCH parity in its OOB area; data can optionally be scrambled.

```
sunxi-nand-image-builder -p 16384 -o 1280 -e 0x400000 -s -c 40/1024 source.bin output.img
```

A boot0 image is built with `-b`, usually together with `-u` for the usable
page size. Boot0 pages are always scrambled with the boot ROM seed.

```
sunxi-nand-image-builder -p 16384 -o 1280 -e 0x400000 -s -b -u 4096 -c 64/1024 spl.bin boot0.img
```

Options (sizes accept decimal, `0x` hex or leading-`0` octal):

- `-c <strength>/<step>`, `--ecc`: ECC strength (16, 24, 28, 32, 40, 48, 56,
  60 or 64) and step size (512 or 1024)
- `-p`, `--page`: page size
- `-o`, `--oob`: OOB size
- `-u`, `--usable`: usable page size (boot0 only; defaults to 8192, 4096 or
  1024 depending on the page size)
- `-e`, `--eraseblock`: erase block size
- `-b`, `--boot0`: build a boot0 image
- `-s`, `--scramble`: scramble data
- `-a`, `--address`: offset the image will be programmed at
- `-h`, `--help`: show help

Empty (all `0xff`) pages are left erased. The command exits with status 0 on
success and 255 on invalid parameters or failures.

### sunxi-meminfo

Run on the target board; it needs read/write access to `/dev/mem`. It reads
the SoC identifier and prints the DRAM configuration:

- A10, A13/A10s, A20: a `[dram_para]` FEX section (default) or a U-Boot
  `dram.c` file (`-u`)
- A31: the DRAM clock and a dump of the COM, CTL and PHY register blocks with
  register names
- A23: the DRAM clock and every non-zero register of those blocks

```
sunxi-meminfo        # FEX format (default)
sunxi-meminfo -u     # U-Boot dram.c format
sunxi-meminfo -h     # help
```

### phoenix-info

Lists the partition table of a Phoenix card image (read from a file or from
standard input) and can extract parts.

```
phoenix-info image.img            # list partitions
phoenix-info -v image.img         # also show header and entry signatures
phoenix-info -q image.img         # no listing
phoenix-info -p 2 -o part2.img image.img
phoenix-info -s -o out/ image.img # save every part as out/<n>.img
```

`-o` takes a file name, a directory ending in `/`, or a pattern where `%d`
stands for the part number; `-` writes the part to standard output. Saving
without `-o` writes `<n>.img` in the current directory.

## Library use

```python
from sunxi_tools.bch import BCH
from sunxi_tools.crc32 import calc_crc32
from sunxi_tools.phoenix import read_table

bch = BCH(14, 40, 0x5803)
ecc = bch.encode(b"\xff" * 1028)          # 70 bytes of parity
more = bch.encode(b"\x00" * 4, ecc)       # continue from earlier parity

checksum = calc_crc32(b"123456789")

with open("image.img", "rb") as stream:
    table = read_table(stream)
    for entry in table.partitions:
        print(entry.start, entry.size)
```

Modules:

- `sunxi_tools.bch`: `BCH` encoder over GF(2^m) and `BCHError`
- `sunxi_tools.nand_image`: `ImageInfo`, `check_image_info`, `scramble`,
  `lfsr_step`, `swap_bits`, `write_page`, `build_image`, `create_image`,
  `parse_args` and `NandImageError`
- `sunxi_tools.meminfo`: `DevMem`, `decode_sun4i_dram`, `dram_clock`,
  `format_fex`, `format_uboot`, `format_registers`, `format_register_range`
  and the sun6i register tables
- `sunxi_tools.phoenix`: `PhoenixTable`, `PhoenixEntry`, `read_table`,
  `format_header`, `format_entry`, `output_name`, `save_part`
- `sunxi_tools.crc32`: `calc_crc32`, the checksum used by NAND partition
  tables

## What this package does not do

- It does not talk to devices over USB (no FEL mode loading or memory access).
- It does not convert FEX scripts to or from their binary form.
- It does not read or rewrite NAND partition tables on a device; only the
  CRC-32 checksum they use is provided.
- It does not decode BCH parity or correct errors; `BCH` only encodes.