"""Binary BCH encoder over GF(2^m), as used for sunxi NAND ECC."""

from __future__ import annotations

from typing import Optional

__all__ = ["BCHError", "BCH"]


class BCHError(ValueError):
    """Raised when a BCH engine cannot be built or used with given input."""


_MIN_M = 5
_MAX_M = 15

# Default primitive polynomials for m = 5 .. 15.
_DEFAULT_PRIM_POLYS = (
    0x25, 0x43, 0x83, 0x11D, 0x211, 0x409, 0x805, 0x1053, 0x201B,
    0x402B, 0x8003,
)


def _div_round_up(n: int, d: int) -> int:
    return (n + d - 1) // d


class BCH:
    """BCH code with Galois field order ``m`` correcting up to ``t`` bit errors.

    ``ecc_bytes`` is the parity length produced by :meth:`encode`;
    ``ecc_bits`` is the exact degree of the generator polynomial.
    """

    def __init__(self, m: int, t: int, prim_poly: int = 0) -> None:
        if not _MIN_M <= m <= _MAX_M:
            raise BCHError(f"Galois field order m={m} outside {_MIN_M}..{_MAX_M}")
        if t < 1 or m * t >= (1 << m) - 1:
            raise BCHError(f"invalid error correction capability t={t} for m={m}")
        if prim_poly == 0:
            prim_poly = _DEFAULT_PRIM_POLYS[m - _MIN_M]

        self.m = m
        self.t = t
        self.n = (1 << m) - 1
        self.ecc_words = _div_round_up(m * t, 32)
        self.ecc_bytes = _div_round_up(m * t, 8)

        self._a_pow, self._a_log = self._build_gf_tables(prim_poly)
        genpoly = self._generator_polynomial()
        self.ecc_bits = genpoly.bit_length() - 1
        self._width = 32 * self.ecc_words
        self._mod8 = self._build_mod8_table(genpoly)
        self._xi = self._build_deg2_base()

    # Galois field helpers

    def _build_gf_tables(self, poly: int) -> tuple[list[int], list[int]]:
        k = 1 << (poly.bit_length() - 1) if poly > 0 else 0
        if k != 1 << self.m:
            raise BCHError(f"primitive polynomial {poly:#x} is not of degree {self.m}")
        a_pow = [0] * (self.n + 1)
        a_log = [0] * (self.n + 1)
        x = 1
        for i in range(self.n):
            a_pow[i] = x
            a_log[x] = i
            if i and x == 1:
                raise BCHError(f"polynomial {poly:#x} is not primitive")
            x <<= 1
            if x & k:
                x ^= poly
        a_pow[self.n] = 1
        a_log[0] = 0
        return a_pow, a_log

    def _mod_s(self, v: int) -> int:
        return v if v < self.n else v - self.n

    def _gf_mul(self, a: int, b: int) -> int:
        if a and b:
            return self._a_pow[self._mod_s(self._a_log[a] + self._a_log[b])]
        return 0

    def _gf_sqr(self, a: int) -> int:
        return self._a_pow[self._mod_s(2 * self._a_log[a])] if a else 0

    def _generator_polynomial(self) -> int:
        roots: set[int] = set()
        for i in range(self.t):
            r = 2 * i + 1
            for _ in range(self.m):
                roots.add(r)
                r = self._mod_s(2 * r)

        coeffs = [1]
        for i in sorted(roots):
            root = self._a_pow[i]
            coeffs = (
                [self._gf_mul(coeffs[0], root)]
                + [
                    self._gf_mul(c, root) ^ prev
                    for c, prev in zip(coeffs[1:], coeffs[:-1])
                ]
                + [1]
            )

        return sum(1 << k for k, c in enumerate(coeffs) if c)

    def _build_mod8_table(self, genpoly: int) -> list[int]:
        """Remainders of ``i * X^deg(g)`` mod ``g``, left-justified in the register."""
        deg = self.ecc_bits
        shift = self._width - deg
        table = []
        for i in range(256):
            rem = i << deg
            while rem.bit_length() > deg:
                rem ^= genpoly << (rem.bit_length() - 1 - deg)
            table.append(rem << shift)
        return table

    def _build_deg2_base(self) -> list[int]:
        m = self.m
        ak = 0
        for i in range(m):
            total = 0
            for j in range(m):
                total ^= self._a_pow[(i * (1 << j)) % self.n]
            if total:
                ak = self._a_pow[i]
                break

        xi = [0] * m
        found = [False] * m
        remaining = m
        for x in range(self.n + 1):
            if not remaining:
                break
            y = self._gf_sqr(x) ^ x
            for _ in range(2):
                r = self._a_log[y]
                if y and r < m and not found[r]:
                    xi[r] = x
                    found[r] = True
                    remaining -= 1
                    break
                y ^= ak
        if remaining:
            raise BCHError("unable to build degree-2 polynomial base")
        return xi

    # Encoding

    def encode(self, data: bytes, ecc: Optional[bytes] = None) -> bytes:
        """Return the BCH parity of ``data``.

        When ``ecc`` is given, encoding continues from that parity, so that
        ``encode(b, encode(a)) == encode(a + b)``.
        """
        pad_bits = 8 * (4 * self.ecc_words - self.ecc_bytes)
        if ecc is None:
            reg = 0
        else:
            ecc = bytes(ecc)
            if len(ecc) != self.ecc_bytes:
                raise BCHError(
                    f"ecc must be {self.ecc_bytes} bytes, got {len(ecc)}"
                )
            reg = int.from_bytes(ecc, "big") << pad_bits

        mask = (1 << self._width) - 1
        top = self._width - 8
        table = self._mod8
        for byte in bytes(data):
            reg = ((reg << 8) & mask) ^ table[(reg >> top) ^ byte]

        return (reg >> pad_bits).to_bytes(self.ecc_bytes, "big")