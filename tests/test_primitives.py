"""
Fixed-width unsigned integer tests.

Run with: pytest tests/test_primitives.py -v
"""

import pytest

from chainlet.primitives import U32, U64, U128, Unsigned


class TestConstruction:
    """Range and type checks at construction."""

    def test_bounds(self):
        assert U32.max_value() == 2**32 - 1
        assert U64.max_value() == 2**64 - 1
        assert U128.max_value() == 2**128 - 1
        assert int(U32.max()) == 2**32 - 1
        assert U32.zero().is_zero()

    def test_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            U32(-1)
        with pytest.raises(ValueError):
            U32(2**32)

    def test_non_int_rejected(self):
        with pytest.raises(TypeError):
            U128(1.5)
        with pytest.raises(TypeError):
            U128("10")
        with pytest.raises(TypeError):
            U128(True)

    def test_base_class_has_no_width(self):
        with pytest.raises(TypeError):
            Unsigned(1)

    def test_coerce(self):
        assert U128.coerce(5) == U128(5)
        v = U128(7)
        assert U128.coerce(v) is v
        with pytest.raises(TypeError):
            U128.coerce(U32(7))


class TestCheckedArithmetic:
    """Checked operations return None instead of wrapping."""

    def test_checked_add(self):
        assert U32(1).checked_add(2) == U32(3)
        assert U32(1).checked_add(U32(2)) == U32(3)
        assert U32.max().checked_add(1) is None

    def test_checked_sub(self):
        assert U128(10).checked_sub(4) == U128(6)
        assert U128(0).checked_sub(1) is None

    def test_increment_at_max(self):
        assert U32(41).increment() == U32(42)
        assert U32.max().increment() is None

    def test_mixed_widths_rejected(self):
        with pytest.raises(TypeError):
            U32(1).checked_add(U128(1))

    def test_results_keep_width(self):
        assert type(U64(1).checked_add(1)) is U64


class TestComparison:
    """Ordering, equality and conversions."""

    def test_ordering_within_width(self):
        assert U128(1) < U128(2)
        assert max(U32(3), U32(9)) == U32(9)

    def test_equality_is_width_sensitive(self):
        assert U32(1) != U128(1)

    def test_int_conversion(self):
        assert int(U128(30)) == 30
        assert [10, 20, 30][U32(1)] == 20
        assert str(U32(5)) == "5"
        assert repr(U128(5)) == "U128(5)"

    def test_hashable(self):
        assert len({U32(1), U32(1), U32(2)}) == 2
