"""
Per-(market, owner) position record.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Position:
    """A user's supply shares, borrow shares and raw collateral in one market."""

    market_id: str
    owner: str
    supply_shares: int = 0
    borrow_shares: int = 0
    collateral: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.owner, str) or not self.owner:
            raise ValueError("owner must be a non-empty string")
        for name in ("supply_shares", "borrow_shares", "collateral"):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")

    def is_empty(self) -> bool:
        return self.supply_shares == 0 and self.borrow_shares == 0 and self.collateral == 0

    def has_debt(self) -> bool:
        return self.borrow_shares > 0


def empty_position(market_id: str, owner: str) -> Position:
    return Position(market_id=market_id, owner=owner)
