"""
Oracle price interface and validation kernel.

This module is intentionally small and pure:
- The functional core validates prices and freshness deterministically.
- The imperative shell is responsible for calling the oracle and supplying
  the current timestamp.

Prices are the value of one collateral unit in loan units, scaled by
`PRICE_SCALE` (1e36).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from .errors import OracleError
from .math import PRICE_SCALE


MIN_ORACLE_PRICE = 10**18
MAX_ORACLE_PRICE = PRICE_SCALE * 10**18
DEFAULT_MAX_STALENESS_SECONDS = 300


@dataclass(frozen=True)
class OraclePrice:
    price: int
    timestamp: int


class PriceOracle:
    """Interface for the external price oracle."""

    def get_price(self, oracle_ref: str) -> OraclePrice:
        raise NotImplementedError


class StaticPriceOracle(PriceOracle):
    """In-memory oracle: prices are set explicitly per oracle reference."""

    def __init__(self) -> None:
        self._prices: Dict[str, OraclePrice] = {}

    def set_price(self, oracle_ref: str, price: int, timestamp: int) -> None:
        self._prices[oracle_ref] = OraclePrice(price=price, timestamp=timestamp)

    def get_price(self, oracle_ref: str) -> OraclePrice:
        try:
            return self._prices[oracle_ref]
        except KeyError:
            raise LookupError(f"no price published for oracle {oracle_ref!r}") from None


def is_fresh(price_timestamp: int, current_timestamp: int, max_staleness_seconds: int) -> bool:
    """Return True if the price timestamp is within the max staleness window."""
    if current_timestamp < 0:
        raise ValueError(f"current_timestamp must be non-negative: {current_timestamp}")
    if max_staleness_seconds <= 0:
        raise ValueError(f"max_staleness_seconds must be positive: {max_staleness_seconds}")
    if price_timestamp > current_timestamp:
        return False
    return (current_timestamp - price_timestamp) <= max_staleness_seconds


def validate_price(
    quote: OraclePrice,
    now: int,
    max_staleness_seconds: int = DEFAULT_MAX_STALENESS_SECONDS,
) -> int:
    """Return the usable price from `quote`, or raise OracleError (fail closed)."""
    price = quote.price
    if not isinstance(price, int) or isinstance(price, bool):
        raise OracleError("OracleUnavailable", f"oracle price must be an int, got {type(price).__name__}")
    if not isinstance(quote.timestamp, int) or isinstance(quote.timestamp, bool):
        raise OracleError("OracleUnavailable", "oracle timestamp must be an int")
    if price < MIN_ORACLE_PRICE:
        raise OracleError("OraclePriceTooLow", f"price {price} below minimum {MIN_ORACLE_PRICE}")
    if price > MAX_ORACLE_PRICE:
        raise OracleError("OraclePriceTooHigh", f"price {price} above maximum {MAX_ORACLE_PRICE}")
    if not is_fresh(quote.timestamp, now, max_staleness_seconds):
        raise OracleError(
            "OracleStale",
            f"price timestamp {quote.timestamp} not within {max_staleness_seconds}s of {now}",
        )
    return price


def fetch_price(
    oracle: PriceOracle,
    oracle_ref: str,
    now: int,
    max_staleness_seconds: int = DEFAULT_MAX_STALENESS_SECONDS,
) -> int:
    """Query `oracle` and validate the answer; any oracle failure becomes OracleError."""
    try:
        quote = oracle.get_price(oracle_ref)
    except OracleError:
        raise
    except Exception as exc:
        raise OracleError("OracleUnavailable", f"oracle {oracle_ref!r} failed: {exc}") from exc
    if not isinstance(quote, OraclePrice):
        raise OracleError("OracleUnavailable", f"oracle {oracle_ref!r} returned {type(quote).__name__}")
    return validate_price(quote, now, max_staleness_seconds)
