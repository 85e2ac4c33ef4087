"""
Lending engine: the imperative shell around the pure lending core.

Every public operation:
- opens (or joins) a batch over the account store and the token ledger,
- loads the records it needs and accrues interest on the market,
- validates the caller (pause flags, flash-loan lock, authorization),
- calls the pure transition in `isolend.core`,
- moves tokens, then writes the records after running the invariant checks.

A batch is all-or-nothing: any exception rolls back every staged write and
token movement; success commits them together and then publishes the batch's
events. A batch that ends with a touched market still locked by a flash loan
fails with `FlashLoanOutstanding`.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
import logging
import time
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Set

from ..config import EngineConfig
from ..core import admin, ledger
from ..core import authorization as auth
from ..core.errors import AuthorizationError, InvariantError, LockError, SolvencyError, ValidationError
from ..core.health import health_report
from ..core.interest import accrue_interest, elapsed_since_update, needs_rate
from ..core.invariants import check_all, check_position
from ..core.irm import RateModel, query_borrow_rate
from ..core.oracle import PriceOracle, fetch_price
from ..core.types import AmountSpec, HealthReport, LedgerResult, LiquidationResult
from ..state.authorization import NEVER_EXPIRES, Authorization
from ..state.balances import TokenLedger, vault_owner
from ..state.market import MarketState
from ..state.position import Position, empty_position
from ..state.protocol import ProtocolState
from ..state.store import (
    KIND_AUTHORIZATION,
    KIND_MARKET,
    KIND_POSITION,
    KIND_PROTOCOL,
    AccountStore,
    decode_record,
    derive_key,
    encode_record,
)
from .events import Event, EventKind
from .flash_loan import FlashLoanCallback, FlashLoanCoordinator


logger = logging.getLogger(__name__)

_PROTOCOL_KEY = derive_key(KIND_PROTOCOL, "state")


def _system_clock() -> int:
    return int(time.time())


def _identity(name: str, value: object) -> str:
    if not isinstance(value, str) or not value or "/" in value:
        raise ValidationError("InvalidInput", f"{name} must be a non-empty string without '/': {value!r}")
    return value


@dataclass
class BatchContext:
    """State of the open batch: one timestamp, one token snapshot, pending events."""

    now: int
    token_snapshot: object
    events: List[Event] = field(default_factory=list)
    touched_markets: Set[str] = field(default_factory=set)
    # Accrual events wait here until the accrued market is saved.
    pending_accruals: Dict[str, Event] = field(default_factory=dict)


class LendingEngine:
    def __init__(
        self,
        store: AccountStore,
        tokens: TokenLedger,
        oracle: PriceOracle,
        rate_models: Mapping[str, RateModel],
        clock: Callable[[], int] = _system_clock,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._oracle = oracle
        self._rate_models = rate_models
        self._clock = clock
        self._config = config or EngineConfig()
        self._batch: Optional[BatchContext] = None
        self._listeners: List[Callable[[Event], None]] = []
        self._flash = FlashLoanCoordinator(self)
        self.event_log: List[Event] = []

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def tokens(self) -> TokenLedger:
        return self._tokens

    def subscribe(self, listener: Callable[[Event], None]) -> None:
        """Call `listener` with every event of every committed batch."""
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def _now(self) -> int:
        now = self._clock()
        if not isinstance(now, int) or isinstance(now, bool) or now < 0:
            raise ValidationError("InvalidInput", f"clock returned an invalid timestamp: {now!r}")
        return now

    @contextmanager
    def batch(self) -> Iterator[BatchContext]:
        """Atomic unit over the store and the token ledger; nested calls join it."""
        if self._batch is not None:
            yield self._batch
            return

        ctx = BatchContext(now=self._now(), token_snapshot=self._tokens.snapshot())
        self._store.begin()
        self._batch = ctx
        try:
            yield ctx
            self._require_no_outstanding_flash_loans(ctx)
        except BaseException as exc:
            self._store.rollback()
            self._tokens.restore(ctx.token_snapshot)
            self._batch = None
            logger.warning("Batch rolled back: %s", getattr(exc, "code", type(exc).__name__))
            raise
        self._store.commit()
        self._batch = None
        self._publish(ctx.events)

    def _ctx(self) -> BatchContext:
        if self._batch is None:
            raise RuntimeError("no open batch")
        return self._batch

    def _require_no_outstanding_flash_loans(self, ctx: BatchContext) -> None:
        for market_id in sorted(ctx.touched_markets):
            market = self._read_market(market_id)
            if market is not None and market.flash_loan_locked:
                raise LockError(
                    "FlashLoanOutstanding",
                    f"market {market_id} is still locked at the end of the batch",
                )

    def _publish(self, events: List[Event]) -> None:
        for event in events:
            logger.info("%s %s", event.kind.value, event.to_dict())
            self.event_log.append(event)
            for listener in self._listeners:
                listener(event)

    def _emit(self, kind: EventKind, market_id: Optional[str] = None, **data: Any) -> None:
        self._ctx().events.append(Event(kind=kind, market_id=market_id, data=data))

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _read_protocol(self) -> Optional[ProtocolState]:
        raw = self._store.read(_PROTOCOL_KEY)
        return None if raw is None else decode_record(ProtocolState, raw)

    def _load_protocol(self) -> ProtocolState:
        protocol = self._read_protocol()
        if protocol is None:
            raise ValidationError("NotInitialized", "protocol has not been initialized")
        return protocol

    def _save_protocol(self, protocol: ProtocolState) -> None:
        self._store.write(_PROTOCOL_KEY, encode_record(protocol))

    def _read_market(self, market_id: str) -> Optional[MarketState]:
        raw = self._store.read(derive_key(KIND_MARKET, _identity("market_id", market_id)))
        return None if raw is None else decode_record(MarketState, raw)

    def _load_market(self, market_id: str) -> MarketState:
        market = self._read_market(market_id)
        if market is None:
            raise ValidationError("MarketNotFound", f"market {market_id} does not exist")
        return market

    def _save_market(self, market: MarketState) -> None:
        violations = check_all(market)
        if violations:
            raise InvariantError(violations)
        self._store.write(derive_key(KIND_MARKET, market.market_id), encode_record(market))
        ctx = self._ctx()
        ctx.touched_markets.add(market.market_id)
        accrual = ctx.pending_accruals.pop(market.market_id, None)
        if accrual is not None and market.last_update == ctx.now:
            ctx.events.append(accrual)

    def _read_position(self, market_id: str, owner: str) -> Optional[Position]:
        key = derive_key(KIND_POSITION, _identity("market_id", market_id), _identity("owner", owner))
        raw = self._store.read(key)
        return None if raw is None else decode_record(Position, raw)

    def _position_for(self, market_id: str, owner: str) -> Position:
        """Existing position of `owner`, or a fresh empty one (created on save)."""
        position = self._read_position(market_id, owner)
        return position if position is not None else empty_position(market_id, owner)

    def _save_position(self, position: Position, market: MarketState) -> None:
        violations = check_position(position, market)
        if violations:
            raise InvariantError(violations)
        key = derive_key(KIND_POSITION, position.market_id, position.owner)
        if self._store.read(key) is None:
            self._emit(EventKind.POSITION_CREATED, position.market_id, owner=position.owner)
        self._store.write(key, encode_record(position))

    def _read_authorization(self, authorizer: str, authorized: str) -> Optional[Authorization]:
        key = derive_key(KIND_AUTHORIZATION, _identity("authorizer", authorizer), _identity("authorized", authorized))
        raw = self._store.read(key)
        return None if raw is None else decode_record(Authorization, raw)

    def _save_authorization(self, record: Authorization) -> None:
        key = derive_key(KIND_AUTHORIZATION, record.authorizer, record.authorized)
        self._store.write(key, encode_record(record))

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def _accrued(self, market: MarketState, now: int) -> tuple[MarketState, int, int]:
        rate = 0
        if needs_rate(market, now):
            rate = query_borrow_rate(
                self._rate_models.get(market.rate_model),
                market.rate_model,
                market.total_borrow_assets,
                market.total_supply_assets,
                elapsed_since_update(market, now),
            )
        result = accrue_interest(market, now, rate, compound=self._config.compound_interest)
        return result.market, result.interest, result.fee_shares

    def _accrue(self, market: MarketState) -> MarketState:
        """
        Accrue `market` to the batch timestamp. If interest moved, the
        accrual event is held until `_save_market` writes the accrued state.
        """
        ctx = self._ctx()
        updated, interest, fee_shares = self._accrued(market, ctx.now)
        if interest or fee_shares:
            logger.debug("Accrued %d interest (%d fee shares) on %s", interest, fee_shares, market.market_id)
            ctx.pending_accruals[market.market_id] = Event(
                kind=EventKind.INTEREST_ACCRUED,
                market_id=market.market_id,
                data=dict(
                    interest=interest,
                    fee_shares=fee_shares,
                    total_borrow_assets=updated.total_borrow_assets,
                    total_supply_assets=updated.total_supply_assets,
                ),
            )
        return updated

    def _price(self, market: MarketState, now: int) -> int:
        return fetch_price(self._oracle, market.oracle, now, self._config.oracle_max_staleness_seconds)

    def _require_permitted(self, owner: str, caller: str) -> None:
        record = None if owner == caller else self._read_authorization(owner, caller)
        auth.require_permitted(owner, caller, record, self._ctx().now)

    def _open_market(self, market_id: str, check_paused: bool = True) -> MarketState:
        """Load, lock-check, pause-check and accrue a market for a user operation."""
        market = self._load_market(market_id)
        ledger.require_unlocked(market)
        if check_paused:
            ledger.require_not_paused(self._load_protocol().paused, market)
        return self._accrue(market)

    # ------------------------------------------------------------------
    # Protocol administration
    # ------------------------------------------------------------------

    def initialize(self, owner: str, fee_recipient: str) -> ProtocolState:
        with self.batch():
            if self._read_protocol() is not None:
                raise ValidationError("AlreadyInitialized", "protocol is already initialized")
            protocol = admin.initialize(owner, fee_recipient)
            self._save_protocol(protocol)
            self._emit(EventKind.PROTOCOL_INITIALIZED, owner=owner, fee_recipient=fee_recipient)
            return protocol

    def transfer_ownership(self, caller: str, new_owner: str) -> ProtocolState:
        with self.batch():
            protocol = admin.transfer_ownership(self._load_protocol(), caller, new_owner)
            self._save_protocol(protocol)
            self._emit(EventKind.OWNERSHIP_TRANSFER_STARTED, owner=protocol.owner, pending_owner=new_owner)
            return protocol

    def accept_ownership(self, caller: str) -> ProtocolState:
        with self.batch():
            previous = self._load_protocol()
            protocol = admin.accept_ownership(previous, caller)
            self._save_protocol(protocol)
            self._emit(EventKind.OWNERSHIP_TRANSFERRED, previous_owner=previous.owner, new_owner=caller)
            return protocol

    def set_fee_recipient(self, caller: str, fee_recipient: str) -> ProtocolState:
        with self.batch():
            protocol = admin.set_fee_recipient(self._load_protocol(), caller, fee_recipient)
            self._save_protocol(protocol)
            self._emit(EventKind.FEE_RECIPIENT_SET, fee_recipient=fee_recipient)
            return protocol

    def set_protocol_paused(self, caller: str, paused: bool) -> ProtocolState:
        with self.batch():
            protocol = admin.set_protocol_paused(self._load_protocol(), caller, paused)
            self._save_protocol(protocol)
            self._emit(EventKind.PROTOCOL_PAUSED_SET, paused=paused)
            return protocol

    def enable_lltv(self, caller: str, lltv: int) -> ProtocolState:
        with self.batch():
            protocol = admin.enable_lltv(self._load_protocol(), caller, lltv, self._config.max_lltvs)
            self._save_protocol(protocol)
            self._emit(EventKind.LLTV_ENABLED, lltv=lltv)
            return protocol

    def enable_irm(self, caller: str, rate_model: str) -> ProtocolState:
        with self.batch():
            protocol = admin.enable_rate_model(
                self._load_protocol(), caller, rate_model, self._config.max_rate_models
            )
            self._save_protocol(protocol)
            self._emit(EventKind.IRM_ENABLED, rate_model=rate_model)
            return protocol

    def create_market(
        self,
        caller: str,
        collateral_mint: str,
        loan_mint: str,
        oracle: str,
        rate_model: str,
        lltv: int,
    ) -> MarketState:
        with self.batch() as ctx:
            protocol, market = admin.create_market(
                self._load_protocol(), caller, collateral_mint, loan_mint, oracle, rate_model, lltv, ctx.now
            )
            if self._read_market(market.market_id) is not None:
                raise ValidationError("MarketExists", f"market {market.market_id} already exists")
            self._save_protocol(protocol)
            self._save_market(market)
            self._emit(
                EventKind.MARKET_CREATED,
                market.market_id,
                collateral_mint=collateral_mint,
                loan_mint=loan_mint,
                oracle=oracle,
                rate_model=rate_model,
                lltv=lltv,
            )
            return market

    def set_market_paused(self, caller: str, market_id: str, paused: bool) -> MarketState:
        with self.batch():
            market = self._load_market(market_id)
            ledger.require_unlocked(market)
            market = admin.set_market_paused(self._load_protocol(), market, caller, paused)
            self._save_market(market)
            self._emit(EventKind.MARKET_PAUSED_SET, market_id, paused=paused)
            return market

    def set_fee(self, caller: str, market_id: str, fee: int) -> MarketState:
        """Change the market fee; interest up to now is charged at the old fee."""
        with self.batch():
            protocol = self._load_protocol()
            admin.require_owner(protocol, caller)
            market = self._open_market(market_id, check_paused=False)
            market = admin.set_fee(protocol, market, caller, fee)
            self._save_market(market)
            self._emit(EventKind.FEE_SET, market_id, fee=fee)
            return market

    def claim_fees(self, caller: str, market_id: str) -> Position:
        """Credit accrued fee shares to the fee recipient's position."""
        with self.batch():
            protocol = self._load_protocol()
            if caller not in (protocol.owner, protocol.fee_recipient):
                raise AuthorizationError("Unauthorized", f"{caller} may not claim fees")
            market = self._open_market(market_id, check_paused=False)
            result = ledger.claim_fees(market, self._position_for(market_id, protocol.fee_recipient))
            self._save_market(result.market)
            self._save_position(result.position, result.market)
            self._emit(EventKind.FEES_CLAIMED, market_id, recipient=protocol.fee_recipient, shares=result.shares)
            return result.position

    def accrue_interest(self, market_id: str) -> MarketState:
        with self.batch():
            market = self._load_market(market_id)
            ledger.require_unlocked(market)
            market = self._accrue(market)
            self._save_market(market)
            return market

    # ------------------------------------------------------------------
    # Positions and authorization
    # ------------------------------------------------------------------

    def create_position(self, caller: str, market_id: str, owner: Optional[str] = None) -> Position:
        """Create `owner`'s (default: caller's) empty position; existing ones are returned as-is."""
        owner = _identity("owner", owner or caller)
        with self.batch():
            market = self._load_market(market_id)
            ledger.require_unlocked(market)
            existing = self._read_position(market_id, owner)
            if existing is not None:
                return existing
            position = empty_position(market_id, owner)
            self._save_position(position, market)
            return position

    def close_position(self, caller: str, market_id: str) -> None:
        with self.batch():
            market = self._load_market(market_id)
            ledger.require_unlocked(market)
            position = self._read_position(market_id, _identity("caller", caller))
            if position is None:
                raise ValidationError("InvalidInput", f"{caller} has no position in market {market_id}")
            if not position.is_empty():
                raise ValidationError("PositionNotEmpty", f"position of {caller} in {market_id} is not empty")
            self._store.delete(derive_key(KIND_POSITION, market_id, caller))
            self._emit(EventKind.POSITION_CLOSED, market_id, owner=caller)

    def set_authorization(
        self,
        caller: str,
        authorized: str,
        expires_at: int = NEVER_EXPIRES,
        is_authorized: bool = True,
    ) -> Authorization:
        with self.batch() as ctx:
            existing = self._read_authorization(_identity("caller", caller), _identity("authorized", authorized))
            record = auth.set_authorization(existing, caller, authorized, expires_at, ctx.now, is_authorized)
            self._save_authorization(record)
            self._emit(
                EventKind.AUTHORIZATION_SET,
                authorizer=caller,
                authorized=authorized,
                is_authorized=is_authorized,
                expires_at=expires_at,
            )
            return record

    def revoke_authorization(self, caller: str, authorized: str) -> Authorization:
        with self.batch():
            existing = self._read_authorization(_identity("caller", caller), _identity("authorized", authorized))
            record = auth.revoke_authorization(existing, caller, authorized)
            self._save_authorization(record)
            self._emit(EventKind.AUTHORIZATION_REVOKED, authorizer=caller, authorized=authorized)
            return record

    # ------------------------------------------------------------------
    # Supply side
    # ------------------------------------------------------------------

    def supply(
        self,
        caller: str,
        market_id: str,
        amount: AmountSpec,
        on_behalf_of: Optional[str] = None,
        min_shares: int = 0,
    ) -> LedgerResult:
        owner = _identity("on_behalf_of", on_behalf_of or caller)
        with self.batch():
            market = self._open_market(market_id)
            result = ledger.supply(market, self._position_for(market_id, owner), amount, min_shares)
            self._tokens.transfer(market.loan_mint, caller, vault_owner(market_id, "loan"), result.assets)
            self._save_market(result.market)
            self._save_position(result.position, result.market)
            self._emit(
                EventKind.SUPPLY, market_id,
                caller=caller, on_behalf_of=owner, assets=result.assets, shares=result.shares,
            )
            return result

    def withdraw(
        self,
        caller: str,
        market_id: str,
        amount: AmountSpec,
        on_behalf_of: Optional[str] = None,
        receiver: Optional[str] = None,
        slippage_bound: int = 0,
    ) -> LedgerResult:
        owner = _identity("on_behalf_of", on_behalf_of or caller)
        receiver = _identity("receiver", receiver or caller)
        with self.batch():
            market = self._open_market(market_id)
            self._require_permitted(owner, caller)
            result = ledger.withdraw(market, self._position_for(market_id, owner), amount, slippage_bound)
            self._tokens.transfer(market.loan_mint, vault_owner(market_id, "loan"), receiver, result.assets)
            self._save_market(result.market)
            self._save_position(result.position, result.market)
            self._emit(
                EventKind.WITHDRAW, market_id,
                caller=caller, on_behalf_of=owner, receiver=receiver,
                assets=result.assets, shares=result.shares,
            )
            return result

    # ------------------------------------------------------------------
    # Collateral
    # ------------------------------------------------------------------

    def supply_collateral(
        self,
        caller: str,
        market_id: str,
        amount: int,
        on_behalf_of: Optional[str] = None,
    ) -> Position:
        owner = _identity("on_behalf_of", on_behalf_of or caller)
        with self.batch():
            market = self._open_market(market_id)
            position = ledger.supply_collateral(self._position_for(market_id, owner), amount)
            self._tokens.transfer(market.collateral_mint, caller, vault_owner(market_id, "collateral"), amount)
            self._save_market(market)
            self._save_position(position, market)
            self._emit(EventKind.SUPPLY_COLLATERAL, market_id, caller=caller, on_behalf_of=owner, amount=amount)
            return position

    def withdraw_collateral(
        self,
        caller: str,
        market_id: str,
        amount: int,
        on_behalf_of: Optional[str] = None,
        receiver: Optional[str] = None,
    ) -> Position:
        owner = _identity("on_behalf_of", on_behalf_of or caller)
        receiver = _identity("receiver", receiver or caller)
        with self.batch() as ctx:
            market = self._open_market(market_id)
            self._require_permitted(owner, caller)
            position = self._position_for(market_id, owner)
            price = self._price(market, ctx.now) if position.has_debt() else None
            position = ledger.withdraw_collateral(market, position, amount, price)
            self._tokens.transfer(market.collateral_mint, vault_owner(market_id, "collateral"), receiver, amount)
            self._save_market(market)
            self._save_position(position, market)
            self._emit(
                EventKind.WITHDRAW_COLLATERAL, market_id,
                caller=caller, on_behalf_of=owner, receiver=receiver, amount=amount,
            )
            return position

    # ------------------------------------------------------------------
    # Borrow side
    # ------------------------------------------------------------------

    def borrow(
        self,
        caller: str,
        market_id: str,
        amount: AmountSpec,
        on_behalf_of: Optional[str] = None,
        receiver: Optional[str] = None,
        max_shares: int = 0,
    ) -> LedgerResult:
        owner = _identity("on_behalf_of", on_behalf_of or caller)
        receiver = _identity("receiver", receiver or caller)
        with self.batch() as ctx:
            market = self._open_market(market_id)
            self._require_permitted(owner, caller)
            price = self._price(market, ctx.now)
            result = ledger.borrow(market, self._position_for(market_id, owner), amount, price, max_shares)
            self._tokens.transfer(market.loan_mint, vault_owner(market_id, "loan"), receiver, result.assets)
            self._save_market(result.market)
            self._save_position(result.position, result.market)
            self._emit(
                EventKind.BORROW, market_id,
                caller=caller, on_behalf_of=owner, receiver=receiver,
                assets=result.assets, shares=result.shares,
            )
            return result

    def repay(
        self,
        caller: str,
        market_id: str,
        amount: AmountSpec,
        on_behalf_of: Optional[str] = None,
    ) -> LedgerResult:
        """Repay debt for anyone. Allowed while paused."""
        owner = _identity("on_behalf_of", on_behalf_of or caller)
        with self.batch():
            market = self._open_market(market_id, check_paused=False)
            result = ledger.repay(market, self._position_for(market_id, owner), amount)
            self._tokens.transfer(market.loan_mint, caller, vault_owner(market_id, "loan"), result.assets)
            self._save_market(result.market)
            self._save_position(result.position, result.market)
            self._emit(
                EventKind.REPAY, market_id,
                caller=caller, on_behalf_of=owner, assets=result.assets, shares=result.shares,
            )
            return result

    def liquidate(self, caller: str, market_id: str, borrower: str, seized_assets: int) -> LiquidationResult:
        """Liquidate an unhealthy position. Allowed while paused."""
        borrower = _identity("borrower", borrower)
        with self.batch() as ctx:
            market = self._open_market(market_id, check_paused=False)
            position = self._position_for(market_id, borrower)
            if not position.has_debt():
                raise SolvencyError("PositionHealthy", f"{borrower} has no debt in market {market_id}")
            price = self._price(market, ctx.now)
            result = ledger.liquidate(market, position, seized_assets, price)
            self._tokens.transfer(market.loan_mint, caller, vault_owner(market_id, "loan"), result.repaid_assets)
            self._tokens.transfer(
                market.collateral_mint, vault_owner(market_id, "collateral"), caller, result.seized_collateral
            )
            self._save_market(result.market)
            self._save_position(result.borrower, result.market)
            self._emit(
                EventKind.LIQUIDATION, market_id,
                liquidator=caller, borrower=borrower,
                repaid_assets=result.repaid_assets, repaid_shares=result.repaid_shares,
                seized_collateral=result.seized_collateral,
            )
            if result.bad_debt_shares:
                logger.warning(
                    "Bad debt of %d assets realized on %s (borrower %s)",
                    result.bad_debt_assets, market_id, borrower,
                )
                self._emit(
                    EventKind.BAD_DEBT_REALIZED, market_id,
                    borrower=borrower, assets=result.bad_debt_assets, shares=result.bad_debt_shares,
                )
            return result

    # ------------------------------------------------------------------
    # Flash loans
    # ------------------------------------------------------------------

    def flash_loan(self, caller: str, market_id: str, amount: int, callback: FlashLoanCallback) -> int:
        """Lend `amount` for the duration of `callback`; returns the fee charged."""
        return self._flash.flash_loan(caller, market_id, amount, callback)

    def flash_loan_start(self, caller: str, market_id: str, amount: int) -> int:
        """Open a two-step flash loan; returns the required repayment."""
        return self._flash.start(caller, market_id, amount)

    def flash_loan_end(self, caller: str, market_id: str, repaid_amount: int) -> MarketState:
        return self._flash.end(caller, market_id, repaid_amount)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_protocol(self) -> Optional[ProtocolState]:
        return self._read_protocol()

    def get_market(self, market_id: str) -> Optional[MarketState]:
        """Stored market record (interest accrued up to its `last_update`)."""
        return self._read_market(market_id)

    def get_position(self, market_id: str, owner: str) -> Optional[Position]:
        return self._read_position(market_id, owner)

    def get_authorization(self, authorizer: str, authorized: str) -> Optional[Authorization]:
        return self._read_authorization(authorizer, authorized)

    def health_factor(self, market_id: str, owner: str) -> HealthReport:
        """
        Health of `owner`'s position with interest accrued to now (not persisted).

        The oracle is only consulted when the position carries debt; without
        debt `max_borrow` is reported as 0 and the health factor as None.
        """
        now = self._batch.now if self._batch is not None else self._now()
        market = self._load_market(market_id)
        market, _, _ = self._accrued(market, now)
        position = self._position_for(market_id, owner)
        if not position.has_debt():
            return HealthReport(
                collateral=position.collateral, borrowed_assets=0, max_borrow=0, health_factor_wad=None
            )
        return health_report(position, market, self._price(market, now))

