"""
Interest rate model interface and reference models.

Rate models return the borrow rate per second, WAD-scaled (1e18 = 100% per
second). Example: 5% APR is about 1.58e-9 per second, i.e. ~1_585_489_599.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import RateModelError
from .math import MAX_BORROW_RATE_PER_SECOND, SECONDS_PER_YEAR, WAD, checked_add, mul_div_down, wad_mul_down


class RateModel:
    """Interface for the external interest rate model."""

    def borrow_rate(self, total_borrow_assets: int, total_supply_assets: int, elapsed: int) -> int:
        raise NotImplementedError


@dataclass(frozen=True)
class FixedRateModel(RateModel):
    """Constant per-second rate regardless of utilization."""

    rate_per_second: int

    def borrow_rate(self, total_borrow_assets: int, total_supply_assets: int, elapsed: int) -> int:
        return self.rate_per_second


@dataclass(frozen=True)
class LinearRateModel(RateModel):
    """
    Kinked utilization curve (yearly, WAD-scaled parameters).

    Below the kink: ``base + slope1 * u``; above it:
    ``base + slope1 * kink + slope2 * (u - kink)``. The per-second result is
    capped at `MAX_BORROW_RATE_PER_SECOND`.

    Example configurations:
        stable:   base 0.01, slope1 0.04, slope2 0.75, kink 0.80
        volatile: base 0.02, slope1 0.08, slope2 1.00, kink 0.70
    """

    base_rate: int
    slope1: int
    slope2: int
    kink: int

    def __post_init__(self) -> None:
        for name in ("base_rate", "slope1", "slope2", "kink"):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool) or v < 0:
                raise ValueError(f"{name} must be a non-negative int")
        if self.kink > WAD:
            raise ValueError(f"kink must be <= WAD: {self.kink}")

    def utilization(self, total_borrow_assets: int, total_supply_assets: int) -> int:
        if total_supply_assets == 0:
            return 0
        return mul_div_down(total_borrow_assets, WAD, total_supply_assets)

    def borrow_rate(self, total_borrow_assets: int, total_supply_assets: int, elapsed: int) -> int:
        if total_supply_assets == 0:
            return self.base_rate // SECONDS_PER_YEAR
        u = self.utilization(total_borrow_assets, total_supply_assets)
        if u <= self.kink:
            yearly = checked_add(self.base_rate, wad_mul_down(u, self.slope1))
        else:
            at_kink = checked_add(self.base_rate, wad_mul_down(self.kink, self.slope1))
            yearly = checked_add(at_kink, wad_mul_down(u - self.kink, self.slope2))
        return min(yearly // SECONDS_PER_YEAR, MAX_BORROW_RATE_PER_SECOND)


def validate_rate(rate: object) -> int:
    """Return `rate` if it is a usable per-second rate, else raise RateModelError."""
    if not isinstance(rate, int) or isinstance(rate, bool):
        raise RateModelError("IrmInvalidRate", f"rate must be an int, got {type(rate).__name__}")
    if rate < 0:
        raise RateModelError("IrmInvalidRate", f"rate must be non-negative: {rate}")
    if rate > MAX_BORROW_RATE_PER_SECOND:
        raise RateModelError("IrmRateTooHigh", f"rate {rate} above cap {MAX_BORROW_RATE_PER_SECOND}")
    return rate


def query_borrow_rate(
    model: RateModel | None,
    model_id: str,
    total_borrow_assets: int,
    total_supply_assets: int,
    elapsed: int,
) -> int:
    """Ask `model` for a rate; any failure becomes RateModelError (fail closed)."""
    if model is None:
        raise RateModelError("IrmUnavailable", f"rate model {model_id!r} is not registered")
    try:
        rate = model.borrow_rate(total_borrow_assets, total_supply_assets, elapsed)
    except RateModelError:
        raise
    except Exception as exc:
        raise RateModelError("IrmUnavailable", f"rate model {model_id!r} failed: {exc}") from exc
    return validate_rate(rate)
