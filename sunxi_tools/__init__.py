"""Tools for Allwinner sunxi SoCs: BCH and CRC-32, NAND images, DRAM info and Phoenix images."""

__version__ = "0.1.0"

__all__ = ["bch", "crc32", "meminfo", "nand_image", "phoenix"]