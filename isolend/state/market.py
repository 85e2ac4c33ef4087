"""
Per-market lending state.

One record per isolated market. Each market pairs exactly one collateral mint
with one loan mint, one oracle, one rate model and one LLTV; those identity
fields are fixed at creation and hash into the market id.
"""

from __future__ import annotations

from dataclasses import dataclass

from .canonical import canonical_json_bytes, domain_sep_bytes, sha256_hex


MAX_FEE_BPS = 2500
LLTV_DENOM = 10_000

_AMOUNT_FIELDS = (
    "total_supply_assets",
    "total_supply_shares",
    "total_borrow_assets",
    "total_borrow_shares",
    "pending_fee_shares",
    "flash_loan_required",
    "flash_loan_fee",
)


def compute_market_id(
    collateral_mint: str,
    loan_mint: str,
    oracle: str,
    rate_model: str,
    lltv: int,
) -> str:
    """
    Deterministically compute a market id from the market's identity fields.

    The same parameters always yield the same id, so a market can only be
    created once per parameter set.
    """
    for name, value in (
        ("collateral_mint", collateral_mint),
        ("loan_mint", loan_mint),
        ("oracle", oracle),
        ("rate_model", rate_model),
    ):
        if not isinstance(value, str) or not value:
            raise ValueError(f"{name} must be a non-empty string")
    if not isinstance(lltv, int) or isinstance(lltv, bool) or not (0 < lltv <= LLTV_DENOM):
        raise ValueError(f"lltv must be in (0, {LLTV_DENOM}]: {lltv}")

    payload = canonical_json_bytes(
        {
            "collateral_mint": collateral_mint,
            "loan_mint": loan_mint,
            "oracle": oracle,
            "rate_model": rate_model,
            "lltv": lltv,
        }
    )
    return sha256_hex(domain_sep_bytes("market_id") + payload)


@dataclass(frozen=True)
class MarketState:
    """State of an isolated lending market."""

    market_id: str
    collateral_mint: str
    loan_mint: str
    oracle: str
    rate_model: str
    lltv: int

    fee: int = 0
    total_supply_assets: int = 0
    total_supply_shares: int = 0
    total_borrow_assets: int = 0
    total_borrow_shares: int = 0
    last_update: int = 0
    pending_fee_shares: int = 0

    paused: bool = False
    flash_loan_locked: bool = False
    flash_loan_required: int = 0
    flash_loan_fee: int = 0

    def __post_init__(self) -> None:
        for name in _AMOUNT_FIELDS + ("fee", "last_update", "lltv"):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")
        if not isinstance(self.paused, bool) or not isinstance(self.flash_loan_locked, bool):
            raise TypeError("paused and flash_loan_locked must be bool")

    @property
    def available_liquidity(self) -> int:
        """Loan tokens not lent out (supply - borrows), floored at 0."""
        if self.total_supply_assets <= self.total_borrow_assets:
            return 0
        return self.total_supply_assets - self.total_borrow_assets

    @property
    def utilization_bps(self) -> int:
        if self.total_supply_assets == 0:
            return 0
        return (self.total_borrow_assets * LLTV_DENOM) // self.total_supply_assets

    @property
    def is_operational(self) -> bool:
        return not self.paused
