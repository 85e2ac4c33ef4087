"""Protocol registry transitions (pure).

Owner-only administration: two-step ownership transfer, fee recipient, pause
flags, the LLTV and rate-model whitelists, market creation and market fees.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Tuple

from ..state.market import LLTV_DENOM, MAX_FEE_BPS, MarketState, compute_market_id
from ..state.protocol import ProtocolState
from .errors import AuthorizationError, ValidationError


DEFAULT_MAX_LLTVS = 10
DEFAULT_MAX_RATE_MODELS = 5


def _require_identity(name: str, value: object, code: str = "InvalidInput") -> str:
    if not isinstance(value, str) or not value:
        if code == "InvalidInput":
            raise ValidationError(code, f"{name} must be a non-empty string")
        raise AuthorizationError(code, f"{name} must be a non-empty string")
    return value


def require_owner(protocol: ProtocolState, caller: str) -> None:
    if caller != protocol.owner:
        raise AuthorizationError("Unauthorized", f"{caller} is not the protocol owner")


def initialize(owner: str, fee_recipient: str) -> ProtocolState:
    _require_identity("owner", owner, "InvalidOwner")
    _require_identity("fee_recipient", fee_recipient)
    return ProtocolState(owner=owner, fee_recipient=fee_recipient)


def transfer_ownership(protocol: ProtocolState, caller: str, new_owner: str) -> ProtocolState:
    """Nominate `new_owner`; ownership moves only once they accept."""
    require_owner(protocol, caller)
    _require_identity("new_owner", new_owner, "InvalidOwner")
    return replace(protocol, pending_owner=new_owner)


def accept_ownership(protocol: ProtocolState, caller: str) -> ProtocolState:
    if protocol.pending_owner is None:
        raise ValidationError("NoPendingOwner", "no ownership transfer is pending")
    if caller != protocol.pending_owner:
        raise AuthorizationError("Unauthorized", f"{caller} is not the pending owner")
    return replace(protocol, owner=caller, pending_owner=None)


def set_fee_recipient(protocol: ProtocolState, caller: str, fee_recipient: str) -> ProtocolState:
    require_owner(protocol, caller)
    _require_identity("fee_recipient", fee_recipient)
    return replace(protocol, fee_recipient=fee_recipient)


def set_protocol_paused(protocol: ProtocolState, caller: str, paused: bool) -> ProtocolState:
    require_owner(protocol, caller)
    if not isinstance(paused, bool):
        raise ValidationError("InvalidInput", "paused must be a bool")
    return replace(protocol, paused=paused)


def enable_lltv(protocol: ProtocolState, caller: str, lltv: int, max_lltvs: int = DEFAULT_MAX_LLTVS) -> ProtocolState:
    require_owner(protocol, caller)
    if not isinstance(lltv, int) or isinstance(lltv, bool) or not (0 < lltv <= LLTV_DENOM):
        raise ValidationError("InvalidLltv", f"lltv must be in (0, {LLTV_DENOM}]: {lltv!r}")
    if protocol.is_lltv_enabled(lltv):
        raise ValidationError("AlreadyEnabled", f"lltv {lltv} is already enabled")
    if len(protocol.enabled_lltvs) >= max_lltvs:
        raise ValidationError("MaxLltvsReached", f"at most {max_lltvs} lltvs can be enabled")
    return replace(protocol, enabled_lltvs=protocol.enabled_lltvs + (lltv,))


def enable_rate_model(
    protocol: ProtocolState,
    caller: str,
    rate_model: str,
    max_rate_models: int = DEFAULT_MAX_RATE_MODELS,
) -> ProtocolState:
    require_owner(protocol, caller)
    _require_identity("rate_model", rate_model)
    if protocol.is_rate_model_enabled(rate_model):
        raise ValidationError("AlreadyEnabled", f"rate model {rate_model!r} is already enabled")
    if len(protocol.enabled_rate_models) >= max_rate_models:
        raise ValidationError("MaxRateModelsReached", f"at most {max_rate_models} rate models can be enabled")
    return replace(protocol, enabled_rate_models=protocol.enabled_rate_models + (rate_model,))


def create_market(
    protocol: ProtocolState,
    caller: str,
    collateral_mint: str,
    loan_mint: str,
    oracle: str,
    rate_model: str,
    lltv: int,
    now: int,
) -> Tuple[ProtocolState, MarketState]:
    """Build a new market from whitelisted parameters. Uniqueness is the caller's check."""
    require_owner(protocol, caller)
    for name, value in (
        ("collateral_mint", collateral_mint),
        ("loan_mint", loan_mint),
        ("oracle", oracle),
    ):
        _require_identity(name, value)
    if collateral_mint == loan_mint:
        raise ValidationError("InvalidInput", "collateral and loan mints must differ")
    if not protocol.is_lltv_enabled(lltv):
        raise ValidationError("LltvNotEnabled", f"lltv {lltv!r} is not enabled")
    if not protocol.is_rate_model_enabled(rate_model):
        raise ValidationError("IrmNotEnabled", f"rate model {rate_model!r} is not enabled")

    market = MarketState(
        market_id=compute_market_id(collateral_mint, loan_mint, oracle, rate_model, lltv),
        collateral_mint=collateral_mint,
        loan_mint=loan_mint,
        oracle=oracle,
        rate_model=rate_model,
        lltv=lltv,
        last_update=now,
    )
    return replace(protocol, market_count=protocol.market_count + 1), market


def set_market_paused(protocol: ProtocolState, market: MarketState, caller: str, paused: bool) -> MarketState:
    require_owner(protocol, caller)
    if not isinstance(paused, bool):
        raise ValidationError("InvalidInput", "paused must be a bool")
    return replace(market, paused=paused)


def set_fee(protocol: ProtocolState, market: MarketState, caller: str, fee: int) -> MarketState:
    """Set the market fee (bps). The caller accrues at the old fee first."""
    require_owner(protocol, caller)
    if not isinstance(fee, int) or isinstance(fee, bool) or fee < 0:
        raise ValidationError("InvalidInput", f"fee must be a non-negative int: {fee!r}")
    if fee > MAX_FEE_BPS:
        raise ValidationError("FeeTooHigh", f"fee {fee} exceeds {MAX_FEE_BPS} bps")
    return replace(market, fee=fee)
