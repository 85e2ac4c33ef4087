"""
Batch command surface.

`execute(engine, commands)` applies an ordered list of `Command`s inside one
engine batch: either every command commits, or none does. Commands are plain
data (`tag` + `args`), so a framework layer can decode them from a request and
hand them over without touching engine methods directly.

The single-step flash loan takes a Python callback and therefore has no
command form; use `flash_loan_start` / `flash_loan_end` in the same batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Literal, Mapping, Sequence, Tuple

from ..core.errors import LendingError, ValidationError
from ..core.types import amount_spec
from .engine import LendingEngine
from .events import Event


CommandTag = Literal[
    "initialize",
    "transfer_ownership",
    "accept_ownership",
    "set_fee_recipient",
    "set_protocol_paused",
    "enable_lltv",
    "enable_irm",
    "create_market",
    "set_market_paused",
    "set_fee",
    "claim_fees",
    "accrue_interest",
    "create_position",
    "close_position",
    "set_authorization",
    "revoke_authorization",
    "supply",
    "withdraw",
    "supply_collateral",
    "withdraw_collateral",
    "borrow",
    "repay",
    "liquidate",
    "flash_loan_start",
    "flash_loan_end",
]


@dataclass(frozen=True)
class Command:
    tag: CommandTag
    args: Mapping[str, Any]


@dataclass(frozen=True)
class BatchResult:
    ok: bool
    events: Tuple[Event, ...] = ()
    error: str | None = None
    code: str | None = None


# tag -> (required args, optional args). Commands carrying an amount take the
# two-field (assets, shares) shape and are converted with `amount_spec`.
_SIGNATURES: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    "initialize": (("owner", "fee_recipient"), ()),
    "transfer_ownership": (("caller", "new_owner"), ()),
    "accept_ownership": (("caller",), ()),
    "set_fee_recipient": (("caller", "fee_recipient"), ()),
    "set_protocol_paused": (("caller", "paused"), ()),
    "enable_lltv": (("caller", "lltv"), ()),
    "enable_irm": (("caller", "rate_model"), ()),
    "create_market": (("caller", "collateral_mint", "loan_mint", "oracle", "rate_model", "lltv"), ()),
    "set_market_paused": (("caller", "market_id", "paused"), ()),
    "set_fee": (("caller", "market_id", "fee"), ()),
    "claim_fees": (("caller", "market_id"), ()),
    "accrue_interest": (("market_id",), ()),
    "create_position": (("caller", "market_id"), ("owner",)),
    "close_position": (("caller", "market_id"), ()),
    "set_authorization": (("caller", "authorized"), ("expires_at", "is_authorized")),
    "revoke_authorization": (("caller", "authorized"), ()),
    "supply": (("caller", "market_id"), ("assets", "shares", "on_behalf_of", "min_shares")),
    "withdraw": (("caller", "market_id"), ("assets", "shares", "on_behalf_of", "receiver", "slippage_bound")),
    "supply_collateral": (("caller", "market_id", "amount"), ("on_behalf_of",)),
    "withdraw_collateral": (("caller", "market_id", "amount"), ("on_behalf_of", "receiver")),
    "borrow": (("caller", "market_id"), ("assets", "shares", "on_behalf_of", "receiver", "max_shares")),
    "repay": (("caller", "market_id"), ("assets", "shares", "on_behalf_of")),
    "liquidate": (("caller", "market_id", "borrower", "seized_assets"), ()),
    "flash_loan_start": (("caller", "market_id", "amount"), ()),
    "flash_loan_end": (("caller", "market_id", "repaid_amount"), ()),
}

_AMOUNT_TAGS = frozenset({"supply", "withdraw", "borrow", "repay"})


def _parse_args(cmd: Command) -> Dict[str, Any]:
    signature = _SIGNATURES.get(cmd.tag)
    if signature is None:
        raise ValidationError("InvalidInput", f"unknown command: {cmd.tag!r}")
    if not isinstance(cmd.args, Mapping):
        raise ValidationError("InvalidInput", f"{cmd.tag}: args must be a mapping")
    required, optional = signature
    missing = [name for name in required if name not in cmd.args]
    if missing:
        raise ValidationError("InvalidInput", f"{cmd.tag}: missing args {', '.join(missing)}")
    unknown = sorted(set(cmd.args) - set(required) - set(optional))
    if unknown:
        raise ValidationError("InvalidInput", f"{cmd.tag}: unknown args {', '.join(unknown)}")

    kwargs = dict(cmd.args)
    if cmd.tag in _AMOUNT_TAGS:
        kwargs["amount"] = amount_spec(assets=kwargs.pop("assets", 0), shares=kwargs.pop("shares", 0))
    return kwargs


def _apply(engine: LendingEngine, cmd: Command) -> None:
    kwargs = _parse_args(cmd)
    method: Callable[..., Any] = getattr(engine, cmd.tag)
    method(**kwargs)


def execute_or_raise(engine: LendingEngine, commands: Sequence[Command]) -> Tuple[Event, ...]:
    """Apply `commands` atomically and return the committed events.

    Raises:
        LendingError: the first failing command's typed error; nothing is committed.
    """
    with engine.batch() as ctx:
        start = len(ctx.events)
        for cmd in commands:
            _apply(engine, cmd)
        events = ctx.events[start:]
    return tuple(events)


def execute(engine: LendingEngine, commands: Sequence[Command]) -> BatchResult:
    """Like ``execute_or_raise()`` but reports failure in the result."""
    try:
        events = execute_or_raise(engine, commands)
    except LendingError as exc:
        return BatchResult(ok=False, error=str(exc), code=exc.code)
    return BatchResult(ok=True, events=events)
