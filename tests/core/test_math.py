"""Tests for isolend/core/math.py: checked arithmetic and mul_div rounding."""

import pytest

from isolend.core.errors import MathOverflowError
from isolend.core.math import (
    U64_MAX,
    U128_MAX,
    WAD,
    checked_add,
    checked_mul,
    checked_sub,
    linear_interest_factor,
    mul_div_down,
    mul_div_up,
    to_u64,
    to_u128,
    w_taylor_compounded,
    zero_floor_sub,
)


# ---------------------------------------------------------------------------
# Checked helpers
# ---------------------------------------------------------------------------

class TestChecked:
    def test_add(self):
        assert checked_add(2, 3) == 5

    def test_add_overflow(self):
        with pytest.raises(MathOverflowError) as exc:
            checked_add(U128_MAX, 1)
        assert exc.value.code == "MathOverflow"

    def test_sub_underflow(self):
        with pytest.raises(MathOverflowError) as exc:
            checked_sub(1, 2)
        assert exc.value.code == "MathUnderflow"

    def test_mul_overflow(self):
        with pytest.raises(MathOverflowError):
            checked_mul(U128_MAX, 2)

    def test_zero_floor_sub(self):
        assert zero_floor_sub(5, 3) == 2
        assert zero_floor_sub(3, 5) == 0
        assert zero_floor_sub(3, 3) == 0


class TestRanges:
    def test_u64_bounds(self):
        assert to_u64(U64_MAX) == U64_MAX
        with pytest.raises(MathOverflowError) as exc:
            to_u64(U64_MAX + 1)
        assert exc.value.code == "AmountOverflow"

    def test_u64_negative(self):
        with pytest.raises(MathOverflowError):
            to_u64(-1)

    def test_u64_rejects_non_int(self):
        with pytest.raises(TypeError):
            to_u64(1.5)

    def test_u128_bounds(self):
        assert to_u128(U128_MAX) == U128_MAX
        with pytest.raises(MathOverflowError):
            to_u128(U128_MAX + 1)


# ---------------------------------------------------------------------------
# mul_div
# ---------------------------------------------------------------------------

class TestMulDiv:
    def test_down_floors(self):
        assert mul_div_down(7, 3, 2) == 10

    def test_up_ceils(self):
        assert mul_div_up(7, 3, 2) == 11

    def test_exact_is_same_both_ways(self):
        assert mul_div_down(6, 4, 3) == mul_div_up(6, 4, 3) == 8

    def test_zero_operand(self):
        assert mul_div_down(0, 5, 3) == 0
        assert mul_div_up(5, 0, 3) == 0

    def test_division_by_zero(self):
        with pytest.raises(MathOverflowError) as exc:
            mul_div_down(1, 1, 0)
        assert exc.value.code == "DivisionByZero"
        with pytest.raises(MathOverflowError):
            mul_div_up(1, 1, 0)

    def test_wide_intermediate(self):
        # collateral * 1e36 price scale exceeds u128 but the quotient fits.
        assert mul_div_down(10**20, 10**36, 10**36) == 10**20

    def test_result_must_fit_u128(self):
        with pytest.raises(MathOverflowError):
            mul_div_down(U128_MAX, 2, 1)


# ---------------------------------------------------------------------------
# Interest factors
# ---------------------------------------------------------------------------

class TestInterestFactors:
    def test_linear(self):
        assert linear_interest_factor(10**9, 1000) == 10**12

    def test_taylor_zero(self):
        assert w_taylor_compounded(0, 1000) == 0
        assert w_taylor_compounded(10**9, 0) == 0

    def test_taylor_third_order(self):
        # rt = 0.1: 0.1 + 0.005 + 0.000166...
        assert w_taylor_compounded(WAD // 10, 1) == 105_166_666_666_666_666

    def test_taylor_exceeds_linear(self):
        rate, elapsed = 10**10, 86_400
        assert w_taylor_compounded(rate, elapsed) > linear_interest_factor(rate, elapsed)
