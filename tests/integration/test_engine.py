"""
Tests for isolend/integration/engine.py.

Scenario world: one market COL -> USD at LLTV 80%, oracle at 1 USD per COL,
alice supplies loan tokens, bob borrows against collateral, liq liquidates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

import pytest

from isolend.core.errors import (
    AuthorizationError,
    LiquidityError,
    OracleError,
    PausedError,
    RateModelError,
    SolvencyError,
    ValidationError,
)
from isolend.core.irm import FixedRateModel, RateModel
from isolend.core.math import PRICE_SCALE, WAD
from isolend.core.oracle import StaticPriceOracle
from isolend.core.types import Assets, Shares
from isolend.integration.engine import LendingEngine
from isolend.integration.events import EventKind
from isolend.state.balances import BalanceTable, vault_owner
from isolend.state.store import MemoryAccountStore


T0 = 1_700_000_000


class _Clock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@dataclass
class _World:
    engine: LendingEngine
    tokens: BalanceTable
    oracle: StaticPriceOracle
    clock: _Clock
    market_id: str

    def set_price(self, price: int) -> None:
        self.oracle.set_price("oracle-col", price, self.clock.now)

    def market(self):
        return self.engine.get_market(self.market_id)

    def position(self, owner: str):
        return self.engine.get_position(self.market_id, owner)

    def usd(self, owner: str) -> int:
        return self.tokens.balance_of(owner, "USD")

    def col(self, owner: str) -> int:
        return self.tokens.balance_of(owner, "COL")


def _make_world(rate_models: Optional[Mapping[str, RateModel]] = None) -> _World:
    tokens = BalanceTable()
    oracle = StaticPriceOracle()
    clock = _Clock(T0)
    engine = LendingEngine(
        MemoryAccountStore(),
        tokens,
        oracle,
        {"irm": FixedRateModel(0)} if rate_models is None else rate_models,
        clock=clock,
    )
    engine.initialize("admin", "treasury")
    engine.enable_lltv("admin", 8000)
    engine.enable_irm("admin", "irm")
    market = engine.create_market("admin", "COL", "USD", "oracle-col", "irm", 8000)

    tokens.mint_to("alice", "USD", 10**6)
    tokens.mint_to("bob", "COL", 10**6)
    tokens.mint_to("liq", "USD", 10**6)
    world = _World(engine=engine, tokens=tokens, oracle=oracle, clock=clock, market_id=market.market_id)
    world.set_price(PRICE_SCALE)
    return world


def _make_borrowed(debt: int = 750, **kwargs) -> _World:
    """alice supplied 1000, bob posted 1000 collateral and borrowed `debt`."""
    w = _make_world(**kwargs)
    w.engine.supply("alice", w.market_id, Assets(1000))
    w.engine.supply_collateral("bob", w.market_id, 1000)
    w.engine.borrow("bob", w.market_id, Assets(debt))
    return w


def _kinds(engine: LendingEngine) -> list[EventKind]:
    return [e.kind for e in engine.event_log]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestRegistry:
    def test_initialize_once(self):
        w = _make_world()
        with pytest.raises(ValidationError) as exc:
            w.engine.initialize("admin", "treasury")
        assert exc.value.code == "AlreadyInitialized"

    def test_uninitialized(self):
        engine = LendingEngine(MemoryAccountStore(), BalanceTable(), StaticPriceOracle(), {})
        with pytest.raises(ValidationError) as exc:
            engine.enable_lltv("admin", 8000)
        assert exc.value.code == "NotInitialized"

    def test_market_created(self):
        w = _make_world()
        m = w.market()
        assert m.last_update == T0
        assert m.lltv == 8000
        assert w.engine.get_protocol().market_count == 1
        assert EventKind.MARKET_CREATED in _kinds(w.engine)

    def test_market_exists(self):
        w = _make_world()
        with pytest.raises(ValidationError) as exc:
            w.engine.create_market("admin", "COL", "USD", "oracle-col", "irm", 8000)
        assert exc.value.code == "MarketExists"
        assert w.engine.get_protocol().market_count == 1

    def test_market_not_found(self):
        w = _make_world()
        with pytest.raises(ValidationError) as exc:
            w.engine.supply("alice", "0xmissing", Assets(1))
        assert exc.value.code == "MarketNotFound"

    def test_ownership_transfer(self):
        w = _make_world()
        w.engine.transfer_ownership("admin", "dao")
        w.engine.accept_ownership("dao")
        assert w.engine.get_protocol().owner == "dao"
        with pytest.raises(AuthorizationError):
            w.engine.enable_lltv("admin", 9000)


# ---------------------------------------------------------------------------
# Supply / withdraw
# ---------------------------------------------------------------------------

class TestSupplyWithdraw:
    def test_round_trip(self):
        w = _make_world()
        r = w.engine.supply("alice", w.market_id, Assets(1000))
        assert r.shares == 10**9
        assert w.usd("alice") == 10**6 - 1000
        assert w.usd(vault_owner(w.market_id, "loan")) == 1000
        assert w.position("alice").supply_shares == 10**9

        r = w.engine.withdraw("alice", w.market_id, Shares(10**9))
        assert r.assets == 1000
        assert w.usd("alice") == 10**6
        assert w.market().total_supply_assets == 0
        assert w.position("alice").supply_shares == 0

    def test_position_created_once(self):
        w = _make_world()
        w.engine.supply("alice", w.market_id, Assets(10))
        w.engine.supply("alice", w.market_id, Assets(10))
        assert _kinds(w.engine).count(EventKind.POSITION_CREATED) == 1

    def test_supply_on_behalf(self):
        w = _make_world()
        w.engine.supply("alice", w.market_id, Assets(10), on_behalf_of="carol")
        assert w.position("carol").supply_shares == 10 * 10**6
        assert w.position("alice") is None

    def test_insufficient_tokens_rolls_back(self):
        w = _make_world()
        w.tokens.mint_to("poor", "USD", 5)
        with pytest.raises(LiquidityError) as exc:
            w.engine.supply("poor", w.market_id, Assets(10))
        assert exc.value.code == "InsufficientFunds"
        assert w.market().total_supply_assets == 0
        assert w.position("poor") is None
        assert w.usd("poor") == 5


# ---------------------------------------------------------------------------
# Borrow / repay
# ---------------------------------------------------------------------------

class TestBorrow:
    def test_borrow(self):
        w = _make_borrowed(750)
        assert w.usd("bob") == 750
        assert w.market().total_borrow_assets == 750
        assert w.position("bob").borrow_shares == 750 * 10**6

    def test_unhealthy_borrow_changes_nothing(self):
        w = _make_borrowed(750)
        with pytest.raises(SolvencyError) as exc:
            w.engine.borrow("bob", w.market_id, Assets(100))
        assert exc.value.code == "PositionUnhealthy"
        assert w.market().total_borrow_assets == 750
        assert w.usd("bob") == 750

    def test_withdraw_collateral_needs_health(self):
        w = _make_borrowed(750)
        with pytest.raises(SolvencyError):
            w.engine.withdraw_collateral("bob", w.market_id, 100)
        w.engine.withdraw_collateral("bob", w.market_id, 62)
        assert w.col("bob") == 10**6 - 1000 + 62

    def test_repay_all(self):
        w = _make_borrowed(750)
        r = w.engine.repay("bob", w.market_id, Shares(750 * 10**6))
        assert r.assets == 750
        assert w.usd("bob") == 0
        assert w.market().total_borrow_assets == 0
        w.engine.withdraw_collateral("bob", w.market_id, 1000)
        assert w.col("bob") == 10**6

    def test_stale_oracle(self):
        w = _make_world()
        w.engine.supply("alice", w.market_id, Assets(1000))
        w.engine.supply_collateral("bob", w.market_id, 1000)
        w.clock.advance(301)
        with pytest.raises(OracleError) as exc:
            w.engine.borrow("bob", w.market_id, Assets(10))
        assert exc.value.code == "OracleStale"
        w.set_price(PRICE_SCALE)
        w.engine.borrow("bob", w.market_id, Assets(10))

    def test_health_factor(self):
        w = _make_borrowed(750)
        report = w.engine.health_factor(w.market_id, "bob")
        assert report.health_factor_wad == 800 * WAD // 750
        assert report.healthy
        idle = w.engine.health_factor(w.market_id, "alice")
        assert idle.health_factor_wad is None
        assert idle.max_borrow == 0


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------

class TestAuthorization:
    def test_stranger_cannot_withdraw(self):
        w = _make_world()
        w.engine.supply("alice", w.market_id, Assets(1000))
        with pytest.raises(AuthorizationError) as exc:
            w.engine.withdraw("eve", w.market_id, Assets(100), on_behalf_of="alice")
        assert exc.value.code == "Unauthorized"

    def test_stranger_cannot_borrow(self):
        w = _make_borrowed(100)
        with pytest.raises(AuthorizationError):
            w.engine.borrow("eve", w.market_id, Assets(10), on_behalf_of="bob")

    def test_delegate_then_revoke(self):
        w = _make_world()
        w.engine.supply("alice", w.market_id, Assets(1000))
        w.engine.set_authorization("alice", "bot")
        w.engine.withdraw("bot", w.market_id, Assets(100), on_behalf_of="alice")
        assert w.usd("bot") == 100
        assert w.position("alice").supply_shares == 900 * 10**6

        w.engine.revoke_authorization("alice", "bot")
        with pytest.raises(AuthorizationError):
            w.engine.withdraw("bot", w.market_id, Assets(100), on_behalf_of="alice")
        with pytest.raises(AuthorizationError) as exc:
            w.engine.set_authorization("alice", "bot")
        assert exc.value.code == "AuthorizationRevoked"

    def test_expired_delegate(self):
        w = _make_world()
        w.engine.supply("alice", w.market_id, Assets(1000))
        w.engine.set_authorization("alice", "bot", expires_at=T0 + 60)
        w.clock.advance(60)
        with pytest.raises(AuthorizationError):
            w.engine.withdraw("bot", w.market_id, Assets(1), on_behalf_of="alice")

    def test_anyone_may_repay(self):
        w = _make_borrowed(750)
        w.engine.repay("liq", w.market_id, Assets(100), on_behalf_of="bob")
        assert w.usd("liq") == 10**6 - 100
        assert w.position("bob").borrow_shares == 650 * 10**6


# ---------------------------------------------------------------------------
# Liquidation
# ---------------------------------------------------------------------------

class TestLiquidation:
    def test_partial(self):
        w = _make_borrowed(750)
        w.set_price(PRICE_SCALE * 9 // 10)
        r = w.engine.liquidate("liq", w.market_id, "bob", 100)
        assert r.seized_collateral == 117
        assert r.repaid_assets == 100
        assert w.usd("liq") == 10**6 - 100
        assert w.col("liq") == 117
        assert w.position("bob").collateral == 883
        assert w.market().total_borrow_assets == 650

    def test_bad_debt(self):
        w = _make_borrowed(750)
        w.set_price(PRICE_SCALE // 2)
        r = w.engine.liquidate("liq", w.market_id, "bob", 500)
        assert r.bad_debt_assets == 250
        m = w.market()
        assert m.total_borrow_assets == 0
        assert m.total_supply_assets == 750
        assert m.total_supply_shares == 10**9
        assert w.usd(vault_owner(w.market_id, "loan")) == 750
        assert w.col("liq") == 1000
        assert EventKind.BAD_DEBT_REALIZED in _kinds(w.engine)

    def test_request_above_debt_pays_only_for_debt(self):
        w = _make_borrowed(750)
        w.set_price(PRICE_SCALE * 9 // 10)
        r = w.engine.liquidate("liq", w.market_id, "bob", 10**6)
        assert r.repaid_assets == 750
        assert r.seized_collateral == 885
        assert r.bad_debt_assets == 0
        assert w.usd("liq") == 10**6 - 750
        assert w.col("liq") == 885
        assert w.position("bob").collateral == 115
        assert w.position("bob").borrow_shares == 0
        assert w.market().total_borrow_assets == 0

    def test_healthy_position(self):
        w = _make_borrowed(750)
        with pytest.raises(SolvencyError) as exc:
            w.engine.liquidate("liq", w.market_id, "bob", 100)
        assert exc.value.code == "PositionHealthy"

    def test_no_debt(self):
        w = _make_world()
        with pytest.raises(SolvencyError) as exc:
            w.engine.liquidate("liq", w.market_id, "alice", 100)
        assert exc.value.code == "PositionHealthy"


# ---------------------------------------------------------------------------
# Pause
# ---------------------------------------------------------------------------

class TestPause:
    def test_market_pause_blocks_supply_not_repay(self):
        w = _make_borrowed(750)
        w.engine.set_market_paused("admin", w.market_id, True)
        with pytest.raises(PausedError) as exc:
            w.engine.supply("alice", w.market_id, Assets(10))
        assert exc.value.code == "MarketPaused"
        w.engine.repay("bob", w.market_id, Assets(100))

    def test_protocol_pause(self):
        w = _make_borrowed(750)
        w.engine.set_protocol_paused("admin", True)
        with pytest.raises(PausedError) as exc:
            w.engine.borrow("bob", w.market_id, Assets(1))
        assert exc.value.code == "ProtocolPaused"
        w.set_price(PRICE_SCALE // 2)
        w.engine.liquidate("liq", w.market_id, "bob", 100)

    def test_only_owner_pauses(self):
        w = _make_world()
        with pytest.raises(AuthorizationError):
            w.engine.set_market_paused("alice", w.market_id, True)


# ---------------------------------------------------------------------------
# Interest and fees
# ---------------------------------------------------------------------------

def _make_interest_world(fee: int) -> _World:
    w = _make_world(rate_models={"irm": FixedRateModel(10**9)})
    w.tokens.mint_to("alice", "USD", 10**12)
    w.tokens.mint_to("bob", "COL", 10**12)
    if fee:
        w.engine.set_fee("admin", w.market_id, fee)
    w.engine.supply("alice", w.market_id, Assets(10**12))
    w.engine.supply_collateral("bob", w.market_id, 10**12)
    w.engine.borrow("bob", w.market_id, Assets(5 * 10**11))
    return w


class TestInterest:
    def test_accrual(self):
        w = _make_interest_world(fee=0)
        w.clock.advance(1000)
        m = w.engine.accrue_interest(w.market_id)
        assert m.total_borrow_assets == 5 * 10**11 + 500_000
        assert m.total_supply_assets == 10**12 + 500_000
        assert m.last_update == T0 + 1000
        assert w.engine.event_log[-1].kind is EventKind.INTEREST_ACCRUED

    def test_fee_claim(self):
        w = _make_interest_world(fee=1000)
        w.clock.advance(1000)
        m = w.engine.accrue_interest(w.market_id)
        pending = m.pending_fee_shares
        assert pending > 0

        with pytest.raises(AuthorizationError):
            w.engine.claim_fees("eve", w.market_id)
        position = w.engine.claim_fees("treasury", w.market_id)
        assert position.owner == "treasury"
        assert position.supply_shares == pending
        assert w.market().pending_fee_shares == 0
        with pytest.raises(ValidationError) as exc:
            w.engine.claim_fees("treasury", w.market_id)
        assert exc.value.code == "ZeroAmount"

    def test_set_fee_accrues_at_old_fee(self):
        w = _make_interest_world(fee=0)
        w.clock.advance(1000)
        m = w.engine.set_fee("admin", w.market_id, 1000)
        assert m.fee == 1000
        assert m.total_borrow_assets == 5 * 10**11 + 500_000
        assert m.pending_fee_shares == 0

    def test_failed_operation_in_batch_publishes_no_accrual(self):
        w = _make_interest_world(fee=0)
        w.clock.advance(1000)
        w.set_price(PRICE_SCALE)
        with w.engine.batch():
            with pytest.raises(LiquidityError):
                w.engine.borrow("bob", w.market_id, Assets(10**13))
        assert EventKind.INTEREST_ACCRUED not in _kinds(w.engine)
        assert w.market().last_update == T0

        w.engine.accrue_interest(w.market_id)
        assert _kinds(w.engine).count(EventKind.INTEREST_ACCRUED) == 1

    def test_accrual_event_published_after_later_save_in_batch(self):
        w = _make_interest_world(fee=0)
        w.clock.advance(1000)
        w.set_price(PRICE_SCALE)
        with w.engine.batch():
            with pytest.raises(LiquidityError):
                w.engine.borrow("bob", w.market_id, Assets(10**13))
            w.engine.repay("bob", w.market_id, Assets(100))
        accruals = [e for e in w.engine.event_log if e.kind is EventKind.INTEREST_ACCRUED]
        assert len(accruals) == 1
        assert accruals[0].data["interest"] == 500_000

    def test_health_factor_does_not_persist_accrual(self):
        w = _make_interest_world(fee=0)
        w.clock.advance(1000)
        w.set_price(PRICE_SCALE)
        w.engine.health_factor(w.market_id, "bob")
        assert w.market().last_update == T0

    def test_unregistered_rate_model(self):
        w = _make_world(rate_models={})
        w.engine.supply("alice", w.market_id, Assets(1000))
        w.engine.supply_collateral("bob", w.market_id, 1000)
        w.engine.borrow("bob", w.market_id, Assets(100))
        w.clock.advance(10)
        with pytest.raises(RateModelError) as exc:
            w.engine.accrue_interest(w.market_id)
        assert exc.value.code == "IrmUnavailable"
        assert w.market().last_update == T0


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------

class TestPositions:
    def test_create_is_idempotent(self):
        w = _make_world()
        first = w.engine.create_position("alice", w.market_id)
        assert first.is_empty()
        assert w.engine.create_position("alice", w.market_id) == first
        assert _kinds(w.engine).count(EventKind.POSITION_CREATED) == 1

    def test_close_empty(self):
        w = _make_world()
        w.engine.supply("alice", w.market_id, Assets(1000))
        with pytest.raises(ValidationError) as exc:
            w.engine.close_position("alice", w.market_id)
        assert exc.value.code == "PositionNotEmpty"
        w.engine.withdraw("alice", w.market_id, Shares(10**9))
        w.engine.close_position("alice", w.market_id)
        assert w.position("alice") is None

    def test_close_missing(self):
        w = _make_world()
        with pytest.raises(ValidationError) as exc:
            w.engine.close_position("alice", w.market_id)
        assert exc.value.code == "InvalidInput"

    def test_identity_with_slash_rejected(self):
        w = _make_world()
        with pytest.raises(ValidationError):
            w.engine.supply("alice", w.market_id, Assets(1), on_behalf_of="a/b")


# ---------------------------------------------------------------------------
# Batches and events
# ---------------------------------------------------------------------------

class TestBatches:
    def test_events_published_after_commit(self):
        w = _make_world()
        seen = []
        w.engine.subscribe(seen.append)
        with w.engine.batch():
            w.engine.supply("alice", w.market_id, Assets(10))
            assert seen == []
        assert EventKind.SUPPLY in [e.kind for e in seen]

    def test_rollback_discards_everything(self):
        w = _make_world()
        before = len(w.engine.event_log)
        with pytest.raises(RuntimeError):
            with w.engine.batch():
                w.engine.supply("alice", w.market_id, Assets(10))
                raise RuntimeError("abort")
        assert w.market().total_supply_assets == 0
        assert w.usd("alice") == 10**6
        assert w.position("alice") is None
        assert len(w.engine.event_log) == before

    def test_one_timestamp_per_batch(self):
        w = _make_world()
        with w.engine.batch() as ctx:
            w.clock.advance(100)
            w.engine.supply("alice", w.market_id, Assets(10))
            assert ctx.now == T0
        assert w.market().last_update == T0
