"""Retrieve DRAM controller settings from the registers of Allwinner SoCs.

Reads the memory-mapped registers through a physical memory device and
prints them either as a ``[dram_para]`` FEX section, a U-Boot ``dram.c``
file, or a raw register dump, depending on the SoC family.
"""

from __future__ import annotations

import errno
import mmap
import os
import struct
import sys
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Iterable, Optional, Sequence, TypeVar

__all__ = [
    "DEVMEM_FILE",
    "MemInfoError",
    "SocVersion",
    "Sun4iDramPara",
    "Register",
    "DevMem",
    "SUN6I_DRAMCOM_REGS",
    "SUN6I_DRAMCTL_REGS",
    "SUN6I_DRAMPHY_REGS",
    "word_at",
    "dram_clock",
    "decode_sun4i_dram",
    "format_uboot",
    "format_fex",
    "format_registers",
    "format_register_range",
    "usage",
    "main",
]

DEVMEM_FILE = "/dev/mem"

_FAILURE_STATUS = 255

SRAM_BASE = 0x01C00000
SRAM_SIZE = 0x00001000
SRAM_VERSION = 0x24

CCM_BASE = 0x01C20000
CCM_SIZE = 0x00001000
CCM_PLL5_CFG = 0x20

SUN4I_DRAM_BASE = 0x01C01000
SUN4I_DRAM_SIZE = 0x00001000

_DRAM_CCR = 0x000
_DRAM_DCR = 0x004
_DRAM_IOCR = 0x008
_DRAM_TPR0 = 0x014
_DRAM_TPR1 = 0x018
_DRAM_TPR2 = 0x01C
_DRAM_ZQCR0 = 0x0A8
_DRAM_ZQCR1 = 0x0AC
_DRAM_MR = 0x1F0
_DRAM_EMR = 0x1F4
_DRAM_EMR2 = 0x1F8
_DRAM_EMR3 = 0x1FC
_DRAM_DLLCR0 = 0x204
_DRAM_DLLCR1 = 0x208
_DRAM_DLLCR2 = 0x20C
_DRAM_DLLCR3 = 0x210
_DRAM_DLLCR4 = 0x214

SUN6I_DRAMCOM_BASE = 0x01C62000
SUN6I_DRAMCOM_SIZE = 0x0300
SUN6I_DRAMCTL_BASE = 0x01C63000
SUN6I_DRAMCTL_SIZE = 0x0400
SUN6I_DRAMPHY_BASE = 0x01C65000
SUN6I_DRAMPHY_SIZE = 0x0400


class MemInfoError(Exception):
    """Raised when registers cannot be read or decoded.

    ``code`` is the exit status the command reports for this error.
    """

    def __init__(self, message: str, code: int = errno.EIO) -> None:
        super().__init__(message)
        self.code = code


class SocVersion(IntEnum):
    """SoC identifiers found in the SRAM controller version register."""

    SUN4I = 0x1623  # A10
    SUN5I = 0x1625  # A13, A10s
    SUN6I = 0x1633  # A31
    SUN7I = 0x1651  # A20
    SUN8I = 0x1650  # A23
    SUN9I = 0x1667  # A33
    SUN10I = 0x1635  # A80


@dataclass
class Sun4iDramPara:
    """DRAM parameters as understood by the sun4i/sun5i/sun7i boot code."""

    baseaddr: int = 0
    clock: int = 0
    type: int = 0
    rank_num: int = 0
    density: int = 0
    io_width: int = 0
    bus_width: int = 0
    cas: int = 0
    zq: int = 0
    odt_en: int = 0
    size: int = 0
    tpr0: int = 0
    tpr1: int = 0
    tpr2: int = 0
    tpr3: int = 0
    tpr4: int = 0
    tpr5: int = 0
    emr1: int = 0
    emr2: int = 0
    emr3: int = 0


@dataclass(frozen=True)
class Register:
    """A named register at a byte offset within a register block."""

    offset: int
    name: str


def _regs(*pairs: tuple[int, str]) -> tuple[Register, ...]:
    return tuple(Register(offset, name) for offset, name in pairs)


SUN6I_DRAMCOM_REGS = _regs(
    (0x00, "SDR_COM_CR"),
    (0x04, "SDR_COM_CCR"),
    (0x10, "SDR_COM_MFACR"),
    (0x30, "SDR_COM_MSACR"),
    (0x50, "SDR_COM_MBACR"),
)

SUN6I_DRAMCTL_REGS = _regs(
    (0x004, "SDR_SCTL"),
    (0x008, "SDR_SSTAT"),
    (0x040, "SDR_MCMD"),
    (0x04C, "SDR_CMDSTAT"),
    (0x050, "SDR_CMDSTATEN"),
    (0x060, "SDR_MRRCFG0"),
    (0x064, "SDR_MRRSTAT0"),
    (0x068, "SDR_MRRSTAT1"),
    (0x07C, "SDR_MCFG1"),
    (0x080, "SDR_MCFG"),
    (0x084, "SDR_PPCFG"),
    (0x088, "SDR_MSTAT"),
    (0x08C, "SDR_LP2ZQCFG"),
    (0x094, "SDR_DTUSTAT"),
    (0x098, "SDR_DTUNA"),
    (0x09C, "SDR_DTUNE"),
    (0x0A0, "SDR_DTUPRD0"),
    (0x0A4, "SDR_DTUPRD1"),
    (0x0A8, "SDR_DTUPRD2"),
    (0x0AC, "SDR_DTUPRD3"),
    (0x0B0, "SDR_DTUAWDT"),
    (0x0C0, "SDR_TOGCNT1U"),
    (0x0CC, "SDR_TOGCNT100N"),
    (0x0D0, "SDR_TREFI"),
    (0x0D4, "SDR_TMRD"),
    (0x0D8, "SDR_TRFC"),
    (0x0DC, "SDR_TRP"),
    (0x0E0, "SDR_TRTW"),
    (0x0E4, "SDR_TAL"),
    (0x0E8, "SDR_TCL"),
    (0x0EC, "SDR_TCWL"),
    (0x0F0, "SDR_TRAS"),
    (0x0F4, "SDR_TRC"),
    (0x0F8, "SDR_TRCD"),
    (0x0FC, "SDR_TRRD"),
    (0x100, "SDR_TRTP"),
    (0x104, "SDR_TWR"),
    (0x108, "SDR_TWTR"),
    (0x10C, "SDR_TEXSR"),
    (0x110, "SDR_TXP"),
    (0x114, "SDR_TXPDLL"),
    (0x118, "SDR_TZQCS"),
    (0x11C, "SDR_TZQCSI"),
    (0x120, "SDR_TDQS"),
    (0x124, "SDR_TCKSRE"),
    (0x128, "SDR_TCKSRX"),
    (0x12C, "SDR_TCKE"),
    (0x130, "SDR_TMOD"),
    (0x134, "SDR_TRSTL"),
    (0x138, "SDR_TZQCL"),
    (0x13C, "SDR_TMRR"),
    (0x140, "SDR_TCKESR"),
    (0x144, "SDR_TDPD"),
    (0x200, "SDR_DTUWACTL"),
    (0x204, "SDR_DTURACTL"),
    (0x208, "SDR_DTUCFG"),
    (0x20C, "SDR_DTUECTL"),
    (0x210, "SDR_DTUWD0"),
    (0x214, "SDR_DTUWD1"),
    (0x218, "SDR_DTUWD2"),
    (0x21C, "SDR_DTUWD3"),
    (0x220, "SDR_DTUWDM"),
    (0x224, "SDR_DTURD0"),
    (0x224, "SDR_DTURD1"),
    (0x22C, "SDR_DTURD2"),
    (0x230, "SDR_DTURD3"),
    (0x234, "SDR_DTULFSRWD"),
    (0x238, "SDR_DTULFSRRD"),
    (0x23C, "SDR_DTUEAF"),
    (0x240, "SDR_DFITCTLDLY"),
    (0x244, "SDR_DFIODTCFG"),
    (0x248, "SDR_DFIODTCFG1"),
    (0x24C, "SDR_DFIODTRMAP"),
    (0x250, "SDR_DFITPHYWRD"),
    (0x254, "SDR_DFITPHYWRL"),
    (0x260, "SDR_DFITRDDEN"),
    (0x264, "SDR_DFITPHYRDL"),
    (0x270, "SDR_DFITPHYUPDTYPE0"),
    (0x274, "SDR_DFITPHYUPDTYPE1"),
    (0x278, "SDR_DFITPHYUPDTYPE2"),
    (0x27C, "SDR_DFITPHYUPDTYPE3"),
    (0x280, "SDR_DFITCTRLUPDMIN"),
    (0x284, "SDR_DFITCTRLUPDMAX"),
    (0x288, "SDR_DFITCTRLUPDDLY"),
    (0x290, "SDR_DFIUPDCFG"),
    (0x294, "SDR_DFITREFMSKI"),
    (0x298, "SDR_DFITCRLUPDI"),
    (0x2AC, "SDR_DFITRCFG0"),
    (0x2B0, "SDR_DFITRSTAT0"),
    (0x2B4, "SDR_DFITRWRLVLEN"),
    (0x2B8, "SDR_DFITRRDLVLEN"),
    (0x2BC, "SDR_DFITRRDLVLGATEEN"),
    (0x2C4, "SDR_DFISTCFG0"),
    (0x2C8, "SDR_DFISTCFG1"),
    (0x2D0, "SDR_DFITDRAMCLKEN"),
    (0x2D4, "SDR_DFITDRAMCLKDIS"),
    (0x2F0, "SDR_DFILPCFG0"),
)

SUN6I_DRAMPHY_REGS = _regs(
    (0x004, "SDR_PIR"),
    (0x008, "SDR_PGCR"),
    (0x00C, "SDR_PGSR"),
    (0x010, "SDR_DLLGCR"),
    (0x014, "SDR_ACDLLCR"),
    (0x018, "SDR_PTR0"),
    (0x01C, "SDR_PTR1"),
    (0x020, "SDR_PTR2"),
    (0x024, "SDR_ACIOCR"),
    (0x028, "SDR_DXCCR"),
    (0x02C, "SDR_DSGCR"),
    (0x030, "SDR_DCR"),
    (0x034, "SDR_DTPR0"),
    (0x038, "SDR_DTPR1"),
    (0x03C, "SDR_DTPR2"),
    (0x040, "SDR_MR0"),
    (0x044, "SDR_MR1"),
    (0x048, "SDR_MR2"),
    (0x04C, "SDR_MR3"),
    (0x050, "SDR_ODTCR"),
    (0x054, "SDR_DTAR"),
    (0x058, "SDR_DTDT0"),
    (0x05C, "SDR_DTDT1"),
    (0x0C0, "SDR_DCUAR"),
    (0x0C4, "SDR_DCUDR"),
    (0x0C8, "SDR_DCURR"),
    (0x0CC, "SDR_DCULR"),
    (0x0D0, "SDR_DCUGCR"),
    (0x0D4, "SDR_DCUTPR"),
    (0x0D8, "SDR_DCUSR0"),
    (0x0DC, "SDR_DCUSR1"),
    (0x100, "SDR_BISTRR"),
    (0x104, "SDR_BISTMSKR0"),
    (0x108, "SDR_BISTMSKR1"),
    (0x10C, "SDR_BISTWCR"),
    (0x110, "SDR_BISTLSR"),
    (0x114, "SDR_BISTAR0"),
    (0x118, "SDR_BISTAR1"),
    (0x11C, "SDR_BISTAR2"),
    (0x120, "SDR_BISTUDPR"),
    (0x124, "SDR_BISTGSR"),
    (0x128, "SDR_BISTWER"),
    (0x12C, "SDR_BISTBER0"),
    (0x130, "SDR_BISTBER1"),
    (0x134, "SDR_BISTBER2"),
    (0x138, "SDR_BISTWCSR"),
    (0x13C, "SDR_BISTFWR0"),
    (0x140, "SDR_BISTFWR1"),
    (0x180, "SDR_ZQ0CR0"),
    (0x184, "SDR_ZQ0CR1"),
    (0x188, "SDR_ZQ0SR0"),
    (0x18C, "SDR_ZQ0SR1"),
    (0x1C0, "SDR_DX0GCR"),
    (0x1C4, "SDR_DX0GSR0"),
    (0x1C8, "SDR_DX0GSR1"),
    (0x1CC, "SDR_DX0DLLCR"),
    (0x1D0, "SDR_DX0DQTR"),
    (0x1D4, "SDR_DX0DQSTR"),
    (0x200, "SDR_DX1GCR"),
    (0x204, "SDR_DX1GSR0"),
    (0x208, "SDR_DX1GSR1"),
    (0x20C, "SDR_DX1DLLCR"),
    (0x210, "SDR_DX1DQTR"),
    (0x214, "SDR_DX1DQSTR"),
    (0x240, "SDR_DX2GCR"),
    (0x244, "SDR_DX2GSR0"),
    (0x248, "SDR_DX2GSR1"),
    (0x24C, "SDR_DX2DLLCR"),
    (0x250, "SDR_DX2DQTR"),
    (0x254, "SDR_DX2DQSTR"),
    (0x280, "SDR_DX3GCR"),
    (0x284, "SDR_DX3GSR0"),
    (0x288, "SDR_DX3GSR1"),
    (0x28C, "SDR_DX3DLLCR"),
    (0x290, "SDR_DX3DQTR"),
    (0x294, "SDR_DX3DQSTR"),
)


def word_at(block: bytes, offset: int) -> int:
    """Return the little-endian 32-bit register value at ``offset`` in ``block``."""
    if offset < 0 or offset + 4 > len(block):
        raise MemInfoError(
            f"register offset {offset:#x} outside block of {len(block)} bytes",
            errno.EINVAL,
        )
    return struct.unpack_from("<I", block, offset)[0]


class DevMem:
    """Physical memory accessed through a memory device file.

    Mapping errors surface as :class:`OSError` (or :class:`ValueError` for
    ranges a regular file cannot provide).
    """

    def __init__(self, path: str = DEVMEM_FILE) -> None:
        self.path = path
        self._fd: Optional[int] = os.open(path, os.O_RDWR)

    def close(self) -> None:
        """Release the device file."""
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    def __enter__(self) -> "DevMem":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _map(self, address: int, size: int, access: int) -> tuple[mmap.mmap, int]:
        if self._fd is None:
            raise MemInfoError(f"{self.path} is closed", errno.EBADF)
        base = address - address % mmap.ALLOCATIONGRANULARITY
        delta = address - base
        return mmap.mmap(self._fd, size + delta, access=access, offset=base), delta

    def read_block(self, address: int, size: int) -> bytes:
        """Return a copy of ``size`` bytes of registers starting at ``address``."""
        mapping, delta = self._map(address, size, mmap.ACCESS_READ)
        with mapping:
            return bytes(mapping[delta:delta + size])

    def read_soc_version(self) -> int:
        """Read the SoC identifier from the SRAM controller version register.

        The identifier is only visible while bit 15 of the register is set;
        the bit is restored to its previous state afterwards.
        """
        mapping, delta = self._map(SRAM_BASE, SRAM_SIZE, mmap.ACCESS_WRITE)
        offset = delta + SRAM_VERSION
        with mapping:
            restore = struct.unpack_from("<I", mapping, offset)[0]
            struct.pack_into("<I", mapping, offset, restore | 0x8000)
            version = struct.unpack_from("<I", mapping, offset)[0] >> 16
            current = struct.unpack_from("<I", mapping, offset)[0]
            struct.pack_into("<I", mapping, offset,
                             (current & ~0x8000 & 0xFFFFFFFF) | (restore & 0x8000))
            mapping.flush()
        return version


def dram_clock(pll5_cfg: int, soc_version: int) -> int:
    """Return the DRAM clock in MHz computed from the PLL5 configuration."""
    n = (pll5_cfg >> 8) & 0x1F
    k = ((pll5_cfg >> 4) & 0x03) + 1
    m = (pll5_cfg & 0x03) + 1
    if soc_version in (SocVersion.SUN6I, SocVersion.SUN8I):
        n += 1
    return (24 * n * k) // m


def decode_sun4i_dram(block: bytes, soc_version: int) -> Sun4iDramPara:
    """Decode the sun4i DRAM controller register block (clock left at 0)."""
    def reg(offset: int) -> int:
        return word_at(block, offset)

    dllcr0 = (reg(_DRAM_DLLCR0) >> 6) & 0x3F
    dllcr1 = (reg(_DRAM_DLLCR1) >> 14) & 0x0F
    dllcr2 = (reg(_DRAM_DLLCR2) >> 14) & 0x0F
    dllcr3 = (reg(_DRAM_DLLCR3) >> 14) & 0x0F
    dllcr4 = (reg(_DRAM_DLLCR4) >> 14) & 0x0F

    tpr4 = 0
    if soc_version == SocVersion.SUN7I:
        if reg(_DRAM_CCR) & 0x20:
            tpr4 |= 0x01
        if not reg(_DRAM_ZQCR1) & 0x01000000:
            tpr4 |= 0x02

    cas = (reg(_DRAM_MR) >> 4) & 0x0F
    zqcr0 = reg(_DRAM_ZQCR0)
    dcr = reg(_DRAM_DCR)
    if dcr & 0x01:
        cas += 4
        dram_type = 3
    else:
        dram_type = 2

    return Sun4iDramPara(
        tpr0=reg(_DRAM_TPR0),
        tpr1=reg(_DRAM_TPR1),
        tpr2=reg(_DRAM_TPR2),
        tpr3=(dllcr0 << 16) | (dllcr4 << 12) | (dllcr3 << 8)
        | (dllcr2 << 4) | dllcr1,
        tpr4=tpr4,
        cas=cas,
        emr1=reg(_DRAM_EMR),
        emr2=reg(_DRAM_EMR2),
        emr3=reg(_DRAM_EMR3),
        odt_en=reg(_DRAM_IOCR) & 0x03,
        zq=(zqcr0 & 0xF0000000) | ((zqcr0 >> 20) & 0xFF)
        | ((zqcr0 & 0xFFFFF) << 8),
        type=dram_type,
        density=(1 << ((dcr >> 3) & 0x07)) * 256,
        rank_num=((dcr >> 10) & 0x03) + 1,
        io_width=((dcr >> 1) & 0x03) * 8,
        bus_width=(((dcr >> 6) & 3) + 1) * 8,
    )


def format_uboot(para: Sun4iDramPara) -> str:
    """Render ``para`` as a U-Boot board ``dram.c`` file."""
    lines = [
        "// place this file in board/sunxi/ in u-boot",
        "/* this file is generated, don't edit it yourself */",
        "",
        '#include "common.h"',
        "#include <asm/arch/dram.h>",
        "",
        "static struct dram_para dram_para = {",
        f"\t.clock = {para.clock},",
        f"\t.type = {para.type},",
        f"\t.rank_num = {para.rank_num},",
        f"\t.density = {para.density},",
        f"\t.io_width = {para.io_width},",
        f"\t.bus_width = {para.bus_width},",
        f"\t.cas = {para.cas},",
        f"\t.zq = 0x{para.zq:02x},",
        f"\t.odt_en = {para.odt_en},",
        "\t.size = !!! FIXME !!!, /* in MiB */",
        f"\t.tpr0 = 0x{para.tpr0:08x},",
        f"\t.tpr1 = 0x{para.tpr1:04x},",
        f"\t.tpr2 = 0x{para.tpr2:05x},",
        f"\t.tpr3 = 0x{para.tpr3:02x},",
        f"\t.tpr4 = 0x{para.tpr4:02x},",
        f"\t.tpr5 = 0x{para.tpr5:02x},",
        f"\t.emr1 = 0x{para.emr1:02x},",
        f"\t.emr2 = 0x{para.emr2:02x},",
        f"\t.emr3 = 0x{para.emr3:02x},",
        "};",
        "",
        "unsigned long sunxi_dram_init(void)",
        "{",
        "\treturn dramc_init(&dram_para);",
        "}",
    ]
    return "\n".join(lines) + "\n"


def format_fex(para: Sun4iDramPara) -> str:
    """Render ``para`` as a ``[dram_para]`` section for a .fex file."""
    lines = [
        "; Insert this section into your .fex file",
        "[dram_para]",
        "dram_baseaddr = 0x40000000",
        f"dram_clk = {para.clock}",
        f"dram_type = {para.type}",
        f"dram_rank_num = {para.rank_num}",
        f"dram_chip_density = {para.density}",
        f"dram_io_width = {para.io_width}",
        f"dram_bus_width = {para.bus_width}",
        f"dram_cas = {para.cas}",
        f"dram_zq = 0x{para.zq:02x}",
        f"dram_odt_en = {para.odt_en}",
        "dram_size = !!! FIXME !!!",
        f"dram_tpr0 = 0x{para.tpr0:08x}",
        f"dram_tpr1 = 0x{para.tpr1:04x}",
        f"dram_tpr2 = 0x{para.tpr2:05x}",
        f"dram_tpr3 = 0x{para.tpr3:02x}",
        f"dram_tpr4 = 0x{para.tpr4:02x}",
        f"dram_tpr5 = 0x{para.tpr5:02x}",
        f"dram_emr1 = 0x{para.emr1:02x}",
        f"dram_emr2 = 0x{para.emr2:02x}",
        f"dram_emr3 = 0x{para.emr3:02x}",
    ]
    return "\n".join(lines) + "\n"


def _header(description: str) -> list[str]:
    return ["/*", f" * {description} Registers", " */"]


def _words(block: bytes) -> Iterable[tuple[int, int]]:
    for offset in range(0, len(block) - len(block) % 4, 4):
        yield offset, word_at(block, offset)


def format_registers(block: bytes, regs: Iterable[Register],
                     description: str, prefix: str) -> str:
    """Dump a register block, naming the registers listed in ``regs``.

    Every named register is printed; every non-zero register is also
    printed under its ``prefix``-based offset name.
    """
    regs = tuple(regs)
    lines = _header(description)
    for offset, value in _words(block):
        lines.extend(f"{reg.name} = 0x{value:08x};"
                     for reg in regs if reg.offset == offset)
        if value:
            lines.append(f"{prefix}_{offset:03X} = 0x{value:08x};")
    return "\n".join(lines) + "\n\n"


def format_register_range(block: bytes, description: str, prefix: str) -> str:
    """Dump every non-zero register of a block under ``prefix``-based names."""
    lines = _header(description)
    lines.extend(f"{prefix}_{offset:03X} = 0x{value:08x};"
                 for offset, value in _words(block) if value)
    return "\n".join(lines) + "\n\n"


def usage(name: str) -> str:
    """Return the usage text for the command."""
    return (
        "sunxi-meminfo\n"
        "\n"
        "Utility to retrieve DRAM information from registers on Allwinner SoCs.\n"
        "\n"
        "This is part of the sunxi-tools package.\n"
        "\n"
        f"Usage: {name} [OPTION]\n"
        "\n"
        "Options:\n"
        "  -f: print in FEX format (default).\n"
        "  -u: print in sunxi U-Boot dram.c file format.\n"
        "  -h: print this usage information.\n"
    )


_T = TypeVar("_T")


def _mapped(what: str, read: Callable[[], _T]) -> _T:
    try:
        return read()
    except OSError as exc:
        raise MemInfoError(f"Failed to map {what} registers: {exc.strerror}",
                           exc.errno or errno.EIO) from exc
    except ValueError as exc:
        raise MemInfoError(f"Failed to map {what} registers: {exc}",
                           errno.EINVAL) from exc


def _clock(devmem: DevMem, soc_version: int) -> int:
    block = _mapped("ccm", lambda: devmem.read_block(CCM_BASE, CCM_SIZE))
    return dram_clock(word_at(block, CCM_PLL5_CFG), soc_version)


def _print_sun4i(devmem: DevMem, soc_version: int, uboot: bool) -> None:
    clock = _clock(devmem, soc_version)
    block = _mapped("dram", lambda: devmem.read_block(SUN4I_DRAM_BASE,
                                                      SUN4I_DRAM_SIZE))
    para = decode_sun4i_dram(block, soc_version)
    para.clock = clock
    sys.stdout.write(format_uboot(para) if uboot else format_fex(para))


_SUN6I_BLOCKS = (
    (SUN6I_DRAMCOM_BASE, SUN6I_DRAMCOM_SIZE, SUN6I_DRAMCOM_REGS,
     "DRAM COM", "SDR_COM"),
    (SUN6I_DRAMCTL_BASE, SUN6I_DRAMCTL_SIZE, SUN6I_DRAMCTL_REGS,
     "DRAM CTL", "SDR_CTL"),
    (SUN6I_DRAMPHY_BASE, SUN6I_DRAMPHY_SIZE, SUN6I_DRAMPHY_REGS,
     "DRAM PHY", "SDR_PHY"),
)


def _print_register_dump(devmem: DevMem, soc_version: int, named: bool) -> None:
    sys.stdout.write(f"DRAM Clock: {_clock(devmem, soc_version)}MHz\n")
    for base, size, regs, description, prefix in _SUN6I_BLOCKS:
        block = _mapped(description,
                        lambda: devmem.read_block(base, size))  # noqa: B023
        if named:
            sys.stdout.write(format_registers(block, regs, description, prefix))
        else:
            sys.stdout.write(format_register_range(block, description, prefix))
        sys.stdout.flush()


def _run(devmem: DevMem, uboot: bool) -> int:
    version = _mapped("sram", devmem.read_soc_version)
    if version in (SocVersion.SUN4I, SocVersion.SUN5I, SocVersion.SUN7I):
        _print_sun4i(devmem, version, uboot)
    elif version == SocVersion.SUN6I:
        _print_register_dump(devmem, version, named=True)
    elif version == SocVersion.SUN8I:
        _print_register_dump(devmem, version, named=False)
    else:
        print(f"Error: unknown or unhandled Soc: 0x{version:04X}", file=sys.stderr)
        return _FAILURE_STATUS
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line entry point; returns the process exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    name = "sunxi-meminfo"

    uboot = False
    if len(args) == 1:
        arg = args[0]
        if arg in ("-f", "-u"):
            uboot = arg == "-u"
        elif arg.startswith("-h") or arg.startswith("--h"):
            sys.stdout.write(usage(name))
            return 0
        else:
            args = [arg, arg]  # fall through to the argument error below
    if len(args) > 1:
        print("Error: wrong argument(s).", file=sys.stderr)
        sys.stdout.write(usage(name))
        return errno.EINVAL

    try:
        devmem = DevMem(DEVMEM_FILE)
    except OSError as exc:
        print(f"Error: failed to open {DEVMEM_FILE}: {exc.strerror}",
              file=sys.stderr)
        return exc.errno or errno.EIO

    with devmem:
        try:
            return _run(devmem, uboot)
        except MemInfoError as exc:
            print(exc, file=sys.stderr)
            return exc.code


if __name__ == "__main__":
    sys.exit(main())