"""CRC-32 checksum (reflected polynomial 0xEDB88320) used by NAND partition tables."""

from __future__ import annotations

from typing import Union

__all__ = ["calc_crc32"]

_POLY = 0xEDB88320


def _table_entry(value: int) -> int:
    for _ in range(8):
        value = (value >> 1) ^ _POLY if value & 1 else value >> 1
    return value


_TABLE = tuple(_table_entry(i) for i in range(256))


def calc_crc32(data: Union[bytes, bytearray, memoryview]) -> int:
    """Return the CRC-32 of ``data`` as an unsigned 32-bit integer."""
    crc = 0xFFFFFFFF
    for byte in bytes(data):
        crc = _TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc ^ 0xFFFFFFFF