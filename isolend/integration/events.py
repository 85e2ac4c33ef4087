"""Events published by the engine after a batch commits."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


class EventKind(Enum):
    """One member per observable state change."""

    PROTOCOL_INITIALIZED = "ProtocolInitialized"
    OWNERSHIP_TRANSFER_STARTED = "OwnershipTransferStarted"
    OWNERSHIP_TRANSFERRED = "OwnershipTransferred"
    FEE_RECIPIENT_SET = "FeeRecipientSet"
    PROTOCOL_PAUSED_SET = "ProtocolPausedSet"
    LLTV_ENABLED = "LltvEnabled"
    IRM_ENABLED = "IrmEnabled"
    MARKET_CREATED = "MarketCreated"
    MARKET_PAUSED_SET = "MarketPausedSet"
    FEE_SET = "FeeSet"
    POSITION_CREATED = "PositionCreated"
    POSITION_CLOSED = "PositionClosed"
    SUPPLY = "Supply"
    WITHDRAW = "Withdraw"
    SUPPLY_COLLATERAL = "SupplyCollateral"
    WITHDRAW_COLLATERAL = "WithdrawCollateral"
    BORROW = "Borrow"
    REPAY = "Repay"
    LIQUIDATION = "Liquidation"
    BAD_DEBT_REALIZED = "BadDebtRealized"
    FLASH_LOAN = "FlashLoan"
    FLASH_LOAN_STARTED = "FlashLoanStarted"
    FLASH_LOAN_ENDED = "FlashLoanEnded"
    INTEREST_ACCRUED = "InterestAccrued"
    AUTHORIZATION_SET = "AuthorizationSet"
    AUTHORIZATION_REVOKED = "AuthorizationRevoked"
    FEES_CLAIMED = "FeesClaimed"


@dataclass(frozen=True)
class Event:
    kind: EventKind
    market_id: Optional[str] = None
    data: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"event": self.kind.value}
        if self.market_id is not None:
            out["market_id"] = self.market_id
        out.update(self.data)
        return out
