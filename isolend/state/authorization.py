"""
Delegation records: (authorizer, authorized) -> time-bounded permission.
"""

from __future__ import annotations

from dataclasses import dataclass


NEVER_EXPIRES = 0


@dataclass(frozen=True)
class Authorization:
    """
    Permission for `authorized` to act on `authorizer`'s positions.

    `expires_at == NEVER_EXPIRES` means no expiry. Once `is_revoked` is set the
    record is never valid again.
    """

    authorizer: str
    authorized: str
    is_authorized: bool = True
    is_revoked: bool = False
    expires_at: int = NEVER_EXPIRES
    created_at: int = 0

    def __post_init__(self) -> None:
        for name in ("authorizer", "authorized"):
            v = getattr(self, name)
            if not isinstance(v, str) or not v:
                raise ValueError(f"{name} must be a non-empty string")
        if self.expires_at < 0:
            raise ValueError(f"expires_at must be non-negative: {self.expires_at}")
        if self.created_at < 0:
            raise ValueError(f"created_at must be non-negative: {self.created_at}")
        if self.is_revoked and self.is_authorized:
            raise ValueError("a revoked authorization cannot be authorized")

    def is_valid(self, now: int) -> bool:
        return (
            self.is_authorized
            and not self.is_revoked
            and (self.expires_at == NEVER_EXPIRES or now < self.expires_at)
        )
