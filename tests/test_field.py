"""Unit tests for M31 / QM31 arithmetic."""

import pytest

from murkl.primitives.field import (
    M31_PRIME,
    QM31,
    evaluate_qm31_poly,
    fold4,
    interpolate_qm31_poly,
    m31_from_le_bytes,
)


class TestM31:
    """Tests for base field helpers."""

    def test_le_bytes_reduced(self):
        """A u32 at or above p wraps into the field."""
        assert m31_from_le_bytes((M31_PRIME).to_bytes(4, "little")) == 0
        assert m31_from_le_bytes((M31_PRIME + 5).to_bytes(4, "little")) == 5
        assert m31_from_le_bytes(b"\x01\x00\x00\x00extra") == 1

    def test_le_bytes_too_short(self):
        with pytest.raises(ValueError):
            m31_from_le_bytes(b"\x01\x02")


class TestQM31:
    """Tests for the degree-4 extension."""

    def test_i_squared_is_minus_one(self):
        i = QM31(0, 1, 0, 0)
        assert i * i == QM31(M31_PRIME - 1, 0, 0, 0)

    def test_u_squared_is_two_plus_i(self):
        u = QM31(0, 0, 1, 0)
        assert u * u == QM31(2, 1, 0, 0)

    def test_mul_commutes(self):
        x = QM31(1, 2, 3, 4)
        y = QM31(5, 6, 7, 8)
        assert x * y == y * x

    def test_mul_distributes(self):
        x, y, z = QM31(11, 0, 7, 3), QM31(2, 9, 1, 4), QM31(5, 5, 5, 5)
        assert x * (y + z) == x * y + x * z

    def test_sub_inverts_add(self):
        x, y = QM31(3, M31_PRIME - 1, 0, 9), QM31(4, 5, 6, 0xFFFFFFFF)
        assert (x + y) - y == x.reduced()
        assert x - x == QM31.zero()

    def test_inverse(self):
        for x in [QM31(1), QM31(0, 1), QM31(3, 1, 4, 1), QM31(M31_PRIME - 1, 7, 0, 123456)]:
            assert x * x.inv() == QM31.one()

    def test_zero_has_no_inverse(self):
        with pytest.raises(ZeroDivisionError):
            QM31.zero().inv()
        with pytest.raises(ZeroDivisionError):
            QM31(M31_PRIME).inv()

    def test_raw_components_survive_bytes(self):
        """Components at or above p are kept as-is on the wire."""
        x = QM31(0xFFFFFFFF, M31_PRIME, 0, 1)
        assert QM31.from_bytes(x.to_bytes()) == x
        assert not x.is_canonical()
        assert x.reduced() == QM31(1, 0, 0, 1)

    def test_arithmetic_reduces(self):
        assert QM31(M31_PRIME) + QM31(1) == QM31(1)

    def test_component_range(self):
        with pytest.raises(ValueError):
            QM31(2**32)
        with pytest.raises(ValueError):
            QM31(-1)

    def test_from_bytes_length(self):
        with pytest.raises(ValueError):
            QM31.from_bytes(b"\x00" * 15)


class TestFolding:
    """Tests for the 4-to-1 fold and final polynomial helpers."""

    def test_fold_alpha_zero(self):
        vals = [QM31(1), QM31(2), QM31(3), QM31(4)]
        assert fold4(vals, QM31.zero()) == QM31(1)

    def test_fold_alpha_one(self):
        vals = [QM31(1, 1), QM31(2), QM31(3), QM31(4, 0, 0, 9)]
        assert fold4(vals, QM31.one()) == QM31(10, 1, 0, 9)

    def test_fold_alpha_two(self):
        vals = [QM31(1), QM31(1), QM31(1), QM31(1)]
        assert fold4(vals, QM31(2)) == QM31(15)

    def test_fold_needs_four(self):
        with pytest.raises(ValueError):
            fold4([QM31(1)] * 3, QM31.one())

    def test_evaluate(self):
        """3 + 2x + x^2 at x = 5."""
        coeffs = [QM31(3, 1), QM31(2), QM31(1)]
        assert evaluate_qm31_poly(coeffs, 5) == QM31(38, 1)

    def test_interpolate_then_evaluate(self):
        values = [QM31(7, 1, 2, 3), QM31(0, 5, 9, 1), QM31(M31_PRIME - 1, 0, 0, 4), QM31(42)]
        coeffs = interpolate_qm31_poly(values)
        assert len(coeffs) == 4
        for x, v in enumerate(values):
            assert evaluate_qm31_poly(coeffs, x) == v

    def test_interpolate_single(self):
        assert interpolate_qm31_poly([QM31(M31_PRIME + 3)]) == [QM31(3)]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
