"""Mersenne-31 field GF(p) and its degree-4 extension QM31.

Uses galois library for all base-field arithmetic. QM31 is built as a tower:
CM31 = M31[i] / (i^2 + 1), QM31 = CM31[u] / (u^2 - 2 - i). An element is
written (a + bi) + (c + di)u.

QM31 components are kept exactly as they appear on the wire (raw u32) so that
decoding and re-encoding a transcript is lossless. Arithmetic reduces them.
"""

import struct
from dataclasses import dataclass

import galois

# --- Field Construction ---

M31_PRIME = 2**31 - 1

FF = galois.GF(M31_PRIME)
"""Base field GF(p) - Mersenne-31 prime field."""

QM31_DEGREE = 4
QM31_BYTES = 16

_U32_MAX = 2**32 - 1


def reduce_m31(value: int) -> int:
    """Reduce an integer into the canonical range [0, p)."""
    return value % M31_PRIME


def m31_from_le_bytes(data: bytes) -> int:
    """Interpret the first 4 bytes as a little-endian u32 and reduce mod p."""
    if len(data) < 4:
        raise ValueError(f"need at least 4 bytes, got {len(data)}")
    return reduce_m31(struct.unpack_from("<I", data)[0])


# --- Extension Field ---

@dataclass(frozen=True)
class QM31:
    """Element (a + bi) + (c + di)u of the degree-4 extension of M31."""
    a: int = 0
    b: int = 0
    c: int = 0
    d: int = 0

    def __post_init__(self):
        for name, value in zip("abcd", self.components()):
            if not 0 <= value <= _U32_MAX:
                raise ValueError(f"QM31 component {name}={value} does not fit in u32")

    @classmethod
    def zero(cls) -> "QM31":
        return cls()

    @classmethod
    def one(cls) -> "QM31":
        return cls(1)

    @classmethod
    def from_bytes(cls, data: bytes) -> "QM31":
        """Read four little-endian u32 components, unreduced."""
        if len(data) != QM31_BYTES:
            raise ValueError(f"QM31 needs {QM31_BYTES} bytes, got {len(data)}")
        return cls(*struct.unpack("<4I", data))

    @classmethod
    def from_ff(cls, elems) -> "QM31":
        """Build from a length-4 FF array [a, b, c, d]."""
        return cls(*(int(x) for x in elems))

    def to_bytes(self) -> bytes:
        return struct.pack("<4I", *self.components())

    def components(self) -> tuple[int, int, int, int]:
        return (self.a, self.b, self.c, self.d)

    def reduced(self) -> "QM31":
        """Same element with every component in [0, p)."""
        return QM31(*(reduce_m31(x) for x in self.components()))

    def is_canonical(self) -> bool:
        return all(x < M31_PRIME for x in self.components())

    def to_ff(self):
        """Components as an FF array [a, b, c, d]."""
        return FF([reduce_m31(x) for x in self.components()])

    def __add__(self, other: "QM31") -> "QM31":
        return QM31.from_ff(self.to_ff() + other.to_ff())

    def __sub__(self, other: "QM31") -> "QM31":
        return QM31.from_ff(self.to_ff() - other.to_ff())

    def __mul__(self, other: "QM31") -> "QM31":
        return QM31.from_ff(_qm31_mul(self.to_ff(), other.to_ff()))

    def inv(self) -> "QM31":
        """Multiplicative inverse. Raises ZeroDivisionError for zero."""
        if self.reduced() == QM31.zero():
            raise ZeroDivisionError("QM31 zero has no inverse")
        a, b, c, d = self.to_ff()
        # x = p + q*u with p, q in CM31; x^-1 = (p - q*u) / (p^2 - q^2 * (2 + i))
        p_re, p_im = a * a - b * b, FF(2) * a * b
        q_re, q_im = c * c - d * d, FF(2) * c * d
        # q^2 * (2 + i)
        r_re = FF(2) * q_re - q_im
        r_im = FF(2) * q_im + q_re
        n_re, n_im = p_re - r_re, p_im - r_im
        # invert the CM31 norm via its own M31 norm
        m_inv = (n_re * n_re + n_im * n_im) ** -1
        ni_re, ni_im = n_re * m_inv, -n_im * m_inv
        return QM31.from_ff(FF([
            int(a * ni_re - b * ni_im),
            int(a * ni_im + b * ni_re),
            int(-(c * ni_re - d * ni_im)),
            int(-(c * ni_im + d * ni_re)),
        ]))


def _qm31_mul(x, y):
    """Product of two FF arrays [a, b, c, d] in QM31."""
    a0, a1, a2, a3 = x
    b0, b1, b2, b3 = y
    two = FF(2)
    # (a2 + a3 i)(b2 + b3 i), later scaled by u^2 = 2 + i
    t1 = a2 * b2 - a3 * b3
    t2 = a2 * b3 + a3 * b2
    return FF([
        int(a0 * b0 - a1 * b1 + two * t1 - t2),
        int(a0 * b1 + a1 * b0 + two * t2 + t1),
        int(a0 * b2 + a2 * b0 - a1 * b3 - a3 * b1),
        int(a0 * b3 + a3 * b0 + a1 * b2 + a2 * b1),
    ])


def fold4(values: list[QM31], alpha: QM31) -> QM31:
    """Fold four evaluations: v0 + alpha*v1 + alpha^2*v2 + alpha^3*v3."""
    if len(values) != 4:
        raise ValueError(f"fold4 needs 4 values, got {len(values)}")
    acc = values[3]
    for v in reversed(values[:3]):
        acc = acc * alpha + v
    return acc


def evaluate_qm31_poly(coeffs: list[QM31], x: int) -> QM31:
    """Evaluate a QM31-coefficient polynomial (ascending order) at a base-field point.

    Each QM31 component is an independent M31 polynomial, evaluated with galois.
    """
    if not coeffs:
        return QM31.zero()
    point = FF(reduce_m31(x))
    out = []
    for k in range(QM31_DEGREE):
        # galois.Poly takes descending coefficients
        desc = [reduce_m31(c.components()[k]) for c in reversed(coeffs)]
        out.append(int(galois.Poly(desc, field=FF)(point)))
    return QM31(*out)


def interpolate_qm31_poly(values: list[QM31]) -> list[QM31]:
    """Coefficients (ascending) of the polynomial taking values[j] at x = j."""
    n = len(values)
    if n == 0:
        raise ValueError("cannot interpolate zero points")
    if n == 1:
        return [values[0].reduced()]
    xs = FF(list(range(n)))
    columns = []
    for k in range(QM31_DEGREE):
        ys = FF([reduce_m31(v.components()[k]) for v in values])
        poly = galois.lagrange_poly(xs, ys)
        columns.append([int(c) for c in poly.coefficients(n, order="asc")])
    return [QM31(*(columns[k][j] for k in range(QM31_DEGREE))) for j in range(n)]
