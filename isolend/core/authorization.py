"""Delegated-authority checks and updates (pure)."""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from ..state.authorization import NEVER_EXPIRES, Authorization
from .errors import AuthorizationError, ValidationError


def is_permitted(owner: str, caller: str, authorization: Optional[Authorization], now: int) -> bool:
    """True if `caller` may act on `owner`'s positions at `now`."""
    if caller == owner:
        return True
    if authorization is None:
        return False
    if authorization.authorizer != owner or authorization.authorized != caller:
        return False
    return authorization.is_valid(now)


def require_permitted(owner: str, caller: str, authorization: Optional[Authorization], now: int) -> None:
    if not is_permitted(owner, caller, authorization, now):
        raise AuthorizationError("Unauthorized", f"{caller} may not act for {owner}")


def set_authorization(
    existing: Optional[Authorization],
    authorizer: str,
    authorized: str,
    expires_at: int,
    now: int,
    is_authorized: bool = True,
) -> Authorization:
    """Create or overwrite an authorization record.

    A record that was ever revoked stays revoked.
    """
    if not authorizer or not authorized:
        raise ValidationError("InvalidInput", "authorizer and authorized must be non-empty")
    if authorizer == authorized:
        raise ValidationError("InvalidInput", "cannot authorize yourself")
    if not isinstance(expires_at, int) or isinstance(expires_at, bool) or expires_at < 0:
        raise ValidationError("InvalidInput", f"expires_at must be a non-negative int: {expires_at!r}")
    if expires_at != NEVER_EXPIRES and expires_at <= now:
        raise ValidationError("InvalidInput", f"expires_at {expires_at} is not in the future")
    if not isinstance(is_authorized, bool):
        raise ValidationError("InvalidInput", "is_authorized must be a bool")

    if existing is None:
        return Authorization(
            authorizer=authorizer,
            authorized=authorized,
            is_authorized=is_authorized,
            expires_at=expires_at,
            created_at=now,
        )
    if existing.is_revoked:
        raise AuthorizationError(
            "AuthorizationRevoked",
            f"authorization {authorizer} -> {authorized} was revoked",
        )
    return replace(existing, is_authorized=is_authorized, expires_at=expires_at)


def revoke_authorization(existing: Optional[Authorization], authorizer: str, authorized: str) -> Authorization:
    if existing is None:
        raise AuthorizationError(
            "AuthorizationNotFound",
            f"no authorization {authorizer} -> {authorized}",
        )
    return replace(existing, is_authorized=False, is_revoked=True)
