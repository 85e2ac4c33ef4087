"""
Flash loan coordination.

Two modes:
- single step: `flash_loan()` lends, runs the borrower's callback while the
  market is locked, then checks the loan vault got back `amount + fee`;
- two step: `start()` locks the market and records the required repayment,
  `end()` pulls it and unlocks. Both steps must land in the same batch, since
  a batch that ends with the market still locked is rolled back.

While a market is locked every other operation on it fails with
`MarketLocked`, so borrowed funds cannot be re-supplied to fake repayment.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from ..core import ledger
from ..core.errors import FlashLoanError
from ..core.math import checked_add
from ..state.balances import TokenLedger, vault_owner
from ..state.market import MarketState
from .events import EventKind

if TYPE_CHECKING:
    from .engine import LendingEngine


@dataclass(frozen=True)
class FlashLoanContext:
    """What a single-step flash loan callback gets to see."""

    market_id: str
    borrower: str
    loan_mint: str
    amount: int
    fee: int
    vault: str
    tokens: TokenLedger

    @property
    def amount_due(self) -> int:
        return self.amount + self.fee

    def repay(self, amount: Optional[int] = None) -> None:
        """Transfer `amount` (default: principal + fee) from the borrower to the vault."""
        self.tokens.transfer(
            self.loan_mint,
            self.borrower,
            self.vault,
            self.amount_due if amount is None else amount,
        )


FlashLoanCallback = Callable[[FlashLoanContext], None]


class FlashLoanCoordinator:
    def __init__(self, engine: "LendingEngine") -> None:
        self._engine = engine

    def _open(self, market_id: str) -> MarketState:
        # Pause, lock and accrual checks shared with every other user operation.
        return self._engine._open_market(market_id)

    def flash_loan(self, borrower: str, market_id: str, amount: int, callback: FlashLoanCallback) -> int:
        engine = self._engine
        tokens = engine.tokens
        with engine.batch():
            market = self._open(market_id)
            fee = ledger.check_flash_loan(market, amount)
            vault = vault_owner(market_id, "loan")
            before = tokens.balance_of(vault, market.loan_mint)

            engine._save_market(ledger.lock_for_flash_loan(market))
            tokens.transfer(market.loan_mint, vault, borrower, amount)
            callback(
                FlashLoanContext(
                    market_id=market_id,
                    borrower=borrower,
                    loan_mint=market.loan_mint,
                    amount=amount,
                    fee=fee,
                    vault=vault,
                    tokens=tokens,
                )
            )

            after = tokens.balance_of(vault, market.loan_mint)
            if after < checked_add(before, fee):
                raise FlashLoanError(
                    "FlashLoanNotRepaid",
                    f"vault holds {after}, needs {before + fee} after flash loan of {amount}",
                )
            engine._save_market(ledger.unlock_after_flash_loan(engine._load_market(market_id), fee))
            engine._emit(EventKind.FLASH_LOAN, market_id, borrower=borrower, amount=amount, fee=fee)
            return fee

    def start(self, borrower: str, market_id: str, amount: int) -> int:
        engine = self._engine
        with engine.batch():
            market = self._open(market_id)
            locked, required = ledger.start_flash_loan(market, amount)
            engine.tokens.transfer(market.loan_mint, vault_owner(market_id, "loan"), borrower, amount)
            engine._save_market(locked)
            engine._emit(
                EventKind.FLASH_LOAN_STARTED, market_id,
                borrower=borrower, amount=amount, required=required,
            )
            return required

    def end(self, borrower: str, market_id: str, repaid_amount: int) -> MarketState:
        engine = self._engine
        with engine.batch():
            market = engine._load_market(market_id)
            unlocked = ledger.end_flash_loan(market, repaid_amount)
            engine.tokens.transfer(
                market.loan_mint, borrower, vault_owner(market_id, "loan"), market.flash_loan_required
            )
            engine._save_market(unlocked)
            engine._emit(
                EventKind.FLASH_LOAN_ENDED, market_id,
                borrower=borrower, repaid=market.flash_loan_required, fee=market.flash_loan_fee,
            )
            return unlocked
