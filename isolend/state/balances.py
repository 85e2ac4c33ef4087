"""
Token balances keyed by (owner, mint).

`TokenLedger` is the token-transfer collaborator the engine moves funds
through. The in-memory `BalanceTable` is its reference implementation; it is
transactional through `snapshot()` / `restore()` so a failed batch leaves no
partial transfers behind.
"""

from typing import Dict, Mapping, Tuple

from ..core.errors import LiquidityError
from ..core.math import to_u64


# Type aliases
Owner = str
Mint = str
Amount = int  # Non-negative integer


def vault_owner(market_id: str, side: str) -> Owner:
    """Identity holding a market's pooled tokens (`side` is "loan" or "collateral")."""
    if side not in ("loan", "collateral"):
        raise ValueError(f"unknown vault side: {side!r}")
    return f"vault:{side}:{market_id}"


class TokenLedger:
    """Interface for the external token-transfer collaborator."""

    def balance_of(self, owner: Owner, mint: Mint) -> Amount:
        raise NotImplementedError

    def transfer(self, mint: Mint, src: Owner, dst: Owner, amount: Amount) -> None:
        raise NotImplementedError

    def snapshot(self) -> object:
        raise NotImplementedError

    def restore(self, snapshot: object) -> None:
        raise NotImplementedError


class BalanceTable(TokenLedger):
    """
    Balance table mapping (owner, mint) -> amount.

    Zero balances are removed to keep the table sparse.
    """

    def __init__(self):
        self._balances: Dict[Tuple[Owner, Mint], Amount] = {}

    def balance_of(self, owner: Owner, mint: Mint) -> Amount:
        """Get balance for (owner, mint). Returns 0 if not found."""
        return self._balances.get((owner, mint), 0)

    def _set(self, owner: Owner, mint: Mint, amount: Amount) -> None:
        if amount < 0:
            raise ValueError(f"Balance cannot be negative: {amount}")
        if amount == 0:
            self._balances.pop((owner, mint), None)
        else:
            self._balances[(owner, mint)] = amount

    def mint_to(self, owner: Owner, mint: Mint, amount: Amount) -> None:
        """Credit `amount` out of thin air (faucet for tests and simulations)."""
        to_u64(amount)
        self._set(owner, mint, self.balance_of(owner, mint) + amount)

    def transfer(self, mint: Mint, src: Owner, dst: Owner, amount: Amount) -> None:
        """
        Move `amount` of `mint` from `src` to `dst`.

        Raises:
            MathOverflowError: amount does not fit in u64
            LiquidityError: `src` holds less than `amount` (InsufficientFunds)
        """
        to_u64(amount)
        if amount == 0:
            return
        current = self.balance_of(src, mint)
        if current < amount:
            raise LiquidityError(
                "InsufficientFunds",
                f"{src} holds {current} of {mint}, needs {amount}",
            )
        self._set(src, mint, current - amount)
        self._set(dst, mint, self.balance_of(dst, mint) + amount)

    def snapshot(self) -> Mapping[Tuple[Owner, Mint], Amount]:
        return dict(self._balances)

    def restore(self, snapshot: object) -> None:
        if not isinstance(snapshot, dict):
            raise TypeError("snapshot must come from BalanceTable.snapshot()")
        self._balances = dict(snapshot)

    def get_balances_for_mint(self, mint: Mint) -> Dict[Owner, Amount]:
        result = {}
        for (owner, m), amount in self._balances.items():
            if m == mint:
                result[owner] = amount
        return result

    def __repr__(self) -> str:
        return f"BalanceTable({len(self._balances)} entries)"
