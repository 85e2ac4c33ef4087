"""Pure integer arithmetic for the lending core.

Every function is stateless and operates on plain Python ints. Stored amounts
are u128 and token transfer amounts are u64; anything outside those ranges
raises ``MathOverflowError`` instead of wrapping or saturating. Intermediate
products may use up to 256 bits (``mul_div_*``), which is what makes
``collateral * price`` with a 1e36 price scale representable.

Rounding is always explicit: ``*_down`` floors, ``*_up`` takes the ceiling.
"""

from __future__ import annotations

from .errors import MathOverflowError

# Fixed-point constants
WAD: int = 10**18
BPS: int = 10_000
PRICE_SCALE: int = 10**36

# Range limits
U64_MAX: int = (1 << 64) - 1
U128_MAX: int = (1 << 128) - 1
U256_MAX: int = (1 << 256) - 1

# Interest
SECONDS_PER_YEAR: int = 31_536_000
MAX_BORROW_RATE_PER_SECOND: int = WAD * 10 // SECONDS_PER_YEAR  # 1000% APR


# -- Checked helpers ---------------------------------------------------------

def _require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")


def checked_add(a: int, b: int) -> int:
    """``a + b``; raises on leaving the u128 range."""
    out = a + b
    if out > U128_MAX:
        raise MathOverflowError("MathOverflow", f"{a} + {b} exceeds u128")
    if out < 0:
        raise MathOverflowError("MathUnderflow", f"{a} + {b} is negative")
    return out


def checked_sub(a: int, b: int) -> int:
    """``a - b``; raises when the result would be negative."""
    out = a - b
    if out < 0:
        raise MathOverflowError("MathUnderflow", f"{a} - {b} is negative")
    if out > U128_MAX:
        raise MathOverflowError("MathOverflow", f"{a} - {b} exceeds u128")
    return out


def checked_mul(a: int, b: int) -> int:
    out = a * b
    if out > U128_MAX:
        raise MathOverflowError("MathOverflow", f"{a} * {b} exceeds u128")
    if out < 0:
        raise MathOverflowError("MathUnderflow", f"{a} * {b} is negative")
    return out


def zero_floor_sub(a: int, b: int) -> int:
    """``max(a - b, 0)``."""
    return a - b if a > b else 0


def to_u64(value: int) -> int:
    """Range-check a token transfer amount."""
    _require_int("amount", value)
    if value < 0 or value > U64_MAX:
        raise MathOverflowError("AmountOverflow", f"amount {value} does not fit in u64")
    return value


def to_u128(value: int) -> int:
    _require_int("value", value)
    if value < 0 or value > U128_MAX:
        raise MathOverflowError("MathOverflow", f"value {value} does not fit in u128")
    return value


# -- Multiply-then-divide ----------------------------------------------------

def _product(a: int, b: int) -> int:
    if a < 0 or b < 0:
        raise MathOverflowError("MathUnderflow", "mul_div operands must be non-negative")
    product = a * b
    if product > U256_MAX:
        raise MathOverflowError("MathOverflow", f"{a} * {b} exceeds u256")
    return product


def mul_div_down(a: int, b: int, c: int) -> int:
    """``floor(a * b / c)``, result range-checked to u128."""
    if c <= 0:
        raise MathOverflowError("DivisionByZero", "mul_div divisor must be positive")
    if a == 0 or b == 0:
        return 0
    return to_u128(_product(a, b) // c)


def mul_div_up(a: int, b: int, c: int) -> int:
    """``ceil(a * b / c)``, result range-checked to u128."""
    if c <= 0:
        raise MathOverflowError("DivisionByZero", "mul_div divisor must be positive")
    if a == 0 or b == 0:
        return 0
    return to_u128((_product(a, b) + c - 1) // c)


def wad_mul_down(a: int, b: int) -> int:
    return mul_div_down(a, b, WAD)


# -- Interest factors --------------------------------------------------------

def linear_interest_factor(rate: int, elapsed: int) -> int:
    """WAD-scaled ``rate * elapsed``."""
    return checked_mul(rate, elapsed)


def w_taylor_compounded(rate: int, elapsed: int) -> int:
    """WAD-scaled ``e^(rate*elapsed) - 1`` to third order.

    ``rt + rt^2/2 + rt^3/6``; every term floors, so the factor never
    overstates interest.
    """
    rt = checked_mul(rate, elapsed)
    if rt == 0:
        return 0
    rt_squared = wad_mul_down(rt, rt)
    second = rt_squared // 2
    third = wad_mul_down(rt_squared, rt) // 6
    return checked_add(checked_add(rt, second), third)
