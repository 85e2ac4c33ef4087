"""Tests for isolend/integration/commands.py: atomic command batches."""

import pytest

from isolend.core.errors import LendingError
from isolend.core.irm import FixedRateModel
from isolend.core.math import PRICE_SCALE
from isolend.core.oracle import StaticPriceOracle
from isolend.integration.commands import BatchResult, Command, execute, execute_or_raise
from isolend.integration.engine import LendingEngine
from isolend.integration.events import EventKind
from isolend.state.balances import BalanceTable
from isolend.state.market import compute_market_id
from isolend.state.store import MemoryAccountStore


T0 = 1_700_000_000
MARKET_ID = compute_market_id("COL", "USD", "oracle-col", "irm", 8000)


def _make_engine():
    tokens = BalanceTable()
    oracle = StaticPriceOracle()
    oracle.set_price("oracle-col", PRICE_SCALE, T0)
    engine = LendingEngine(MemoryAccountStore(), tokens, oracle, {"irm": FixedRateModel(0)}, clock=lambda: T0)
    tokens.mint_to("alice", "USD", 10**6)
    tokens.mint_to("bob", "COL", 10**6)
    return engine, tokens


def _setup_commands():
    return [
        Command("initialize", {"owner": "admin", "fee_recipient": "treasury"}),
        Command("enable_lltv", {"caller": "admin", "lltv": 8000}),
        Command("enable_irm", {"caller": "admin", "rate_model": "irm"}),
        Command(
            "create_market",
            {
                "caller": "admin",
                "collateral_mint": "COL",
                "loan_mint": "USD",
                "oracle": "oracle-col",
                "rate_model": "irm",
                "lltv": 8000,
            },
        ),
    ]


def _ready_engine():
    engine, tokens = _make_engine()
    execute_or_raise(engine, _setup_commands())
    return engine, tokens


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

class TestExecute:
    def test_full_flow_in_one_batch(self):
        engine, tokens = _make_engine()
        result = execute(
            engine,
            _setup_commands()
            + [
                Command("supply", {"caller": "alice", "market_id": MARKET_ID, "assets": 1000}),
                Command("supply_collateral", {"caller": "bob", "market_id": MARKET_ID, "amount": 1000}),
                Command("borrow", {"caller": "bob", "market_id": MARKET_ID, "assets": 500}),
                Command("repay", {"caller": "bob", "market_id": MARKET_ID, "shares": 500 * 10**6}),
            ],
        )
        assert result.ok, result.error
        kinds = [e.kind for e in result.events]
        assert kinds[0] is EventKind.PROTOCOL_INITIALIZED
        assert kinds[-1] is EventKind.REPAY
        assert EventKind.BORROW in kinds
        assert engine.get_market(MARKET_ID).total_borrow_assets == 0
        assert tokens.balance_of("bob", "USD") == 0

    def test_events_are_only_this_batch(self):
        engine, _ = _ready_engine()
        events = execute_or_raise(
            engine, [Command("supply", {"caller": "alice", "market_id": MARKET_ID, "assets": 10})]
        )
        assert [e.kind for e in events] == [EventKind.POSITION_CREATED, EventKind.SUPPLY]

    def test_two_step_flash_loan(self):
        engine, tokens = _ready_engine()
        tokens.mint_to("fl", "USD", 10)
        result = execute(
            engine,
            [
                Command("supply", {"caller": "alice", "market_id": MARKET_ID, "assets": 1000}),
                Command("flash_loan_start", {"caller": "fl", "market_id": MARKET_ID, "amount": 1000}),
                Command("flash_loan_end", {"caller": "fl", "market_id": MARKET_ID, "repaid_amount": 1001}),
            ],
        )
        assert result.ok, result.error
        assert engine.get_market(MARKET_ID).total_supply_assets == 1001


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class TestFailures:
    def test_failure_commits_nothing(self):
        engine, tokens = _ready_engine()
        result = execute(
            engine,
            [
                Command("supply", {"caller": "alice", "market_id": MARKET_ID, "assets": 1000}),
                Command("borrow", {"caller": "bob", "market_id": MARKET_ID, "assets": 1}),
            ],
        )
        assert result == BatchResult(ok=False, error=result.error, code="PositionUnhealthy")
        assert engine.get_market(MARKET_ID).total_supply_assets == 0
        assert tokens.balance_of("alice", "USD") == 10**6

    def test_outstanding_flash_loan(self):
        engine, tokens = _ready_engine()
        tokens.mint_to("fl", "USD", 10)
        result = execute(
            engine,
            [
                Command("supply", {"caller": "alice", "market_id": MARKET_ID, "assets": 1000}),
                Command("flash_loan_start", {"caller": "fl", "market_id": MARKET_ID, "amount": 1000}),
            ],
        )
        assert not result.ok
        assert result.code == "FlashLoanOutstanding"
        assert engine.get_market(MARKET_ID).total_supply_assets == 0

    @pytest.mark.parametrize(
        "command",
        [
            Command("mint", {}),
            Command("supply", {"caller": "alice"}),
            Command("supply", {"caller": "alice", "market_id": MARKET_ID, "assets": 1, "memo": "x"}),
            Command("supply", {"caller": "alice", "market_id": MARKET_ID, "assets": 1, "shares": 1}),
        ],
    )
    def test_malformed(self, command):
        engine, _ = _ready_engine()
        result = execute(engine, [command])
        assert not result.ok
        assert result.code == "InvalidInput"

    def test_zero_amount(self):
        engine, _ = _ready_engine()
        result = execute(engine, [Command("supply", {"caller": "alice", "market_id": MARKET_ID})])
        assert result.code == "ZeroAmount"

    def test_execute_or_raise(self):
        engine, _ = _ready_engine()
        with pytest.raises(LendingError) as exc:
            execute_or_raise(engine, [Command("accept_ownership", {"caller": "admin"})])
        assert exc.value.code == "NoPendingOwner"
