"""
Imperative shell: engine, flash loans, events and the batch command surface
"""

from .commands import BatchResult, Command, execute, execute_or_raise
from .engine import BatchContext, LendingEngine
from .events import Event, EventKind
from .flash_loan import FlashLoanContext

__all__ = [
    "BatchResult",
    "Command",
    "execute",
    "execute_or_raise",
    "BatchContext",
    "LendingEngine",
    "Event",
    "EventKind",
    "FlashLoanContext",
]
