"""Exception types for the lending core.

Every failure carries a stable ``code`` (e.g. ``"ZeroAmount"``) so callers can
tell "fix your input" apart from "market conditions changed". The class names
the family; the code names the exact condition.
"""

from __future__ import annotations


class LendingError(Exception):
    """Base class for all lending-core failures."""

    kind = "lending"

    def __init__(self, code: str, message: str | None = None) -> None:
        self.code = code
        self.message = message or code
        super().__init__(f"{code}: {self.message}" if message else code)


class ValidationError(LendingError):
    """Bad parameters; rejected before any state mutation."""

    kind = "validation"


class AuthorizationError(LendingError):
    """Caller is not the owner, an authorized delegate or the protocol owner."""

    kind = "authorization"


class PausedError(LendingError):
    """Protocol or market is paused."""

    kind = "paused"


class SolvencyError(LendingError):
    """Health factor would fall below 1, or a liquidation target is healthy."""

    kind = "solvency"


class LiquidityError(LendingError):
    """Market liquidity or a token balance is insufficient."""

    kind = "liquidity"


class LockError(LendingError):
    """Operation attempted while a flash loan holds the market lock."""

    kind = "lock"


class FlashLoanError(LendingError):
    """Flash loan was not repaid, or no flash loan is active."""

    kind = "flash_loan"


class OracleError(LendingError):
    """Oracle price is stale, out of range or unavailable."""

    kind = "oracle"


class RateModelError(LendingError):
    """Rate model is unavailable or returned an invalid rate."""

    kind = "rate_model"


class MathOverflowError(LendingError):
    """Arithmetic left the representable range."""

    kind = "overflow"


class InvariantError(LendingError):
    """Raised when a post-state violates one or more invariants."""

    kind = "invariant"

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__("InvariantViolation", f"invariant violations: {', '.join(violations)}")
