"""
Protocol-wide singleton state.

Owner, pending owner (two-step transfer), fee recipient, global pause flag and
the LLTV / rate-model whitelists. Whitelists only grow.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class ProtocolState:
    owner: str
    fee_recipient: str
    pending_owner: Optional[str] = None
    paused: bool = False
    enabled_lltvs: Tuple[int, ...] = ()
    enabled_rate_models: Tuple[str, ...] = ()
    market_count: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.owner, str) or not self.owner:
            raise ValueError("owner must be a non-empty string")
        if not isinstance(self.fee_recipient, str) or not self.fee_recipient:
            raise ValueError("fee_recipient must be a non-empty string")
        if self.pending_owner is not None and (not isinstance(self.pending_owner, str) or not self.pending_owner):
            raise ValueError("pending_owner must be None or a non-empty string")
        if len(set(self.enabled_lltvs)) != len(self.enabled_lltvs):
            raise ValueError("enabled_lltvs must not contain duplicates")
        if len(set(self.enabled_rate_models)) != len(self.enabled_rate_models):
            raise ValueError("enabled_rate_models must not contain duplicates")
        if self.market_count < 0:
            raise ValueError(f"market_count must be non-negative: {self.market_count}")

    def is_lltv_enabled(self, lltv: int) -> bool:
        return lltv in self.enabled_lltvs

    def is_rate_model_enabled(self, rate_model: str) -> bool:
        return rate_model in self.enabled_rate_models
