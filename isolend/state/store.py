"""
Account store: deterministic keys, canonical record encoding, atomic batches.

The store is an external collaborator; `MemoryAccountStore` is the in-memory
reference implementation. Writes are only accepted inside `begin()` ...
`commit()` / `rollback()`, and reads inside a batch observe its staged writes.
"""

from __future__ import annotations

from dataclasses import fields
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

from .canonical import canonical_json_bytes, canonical_json_loads


KEY_NAMESPACE = "isolend_v1"

KIND_PROTOCOL = "protocol"
KIND_MARKET = "market"
KIND_POSITION = "position"
KIND_AUTHORIZATION = "authorization"

_KINDS = (KIND_PROTOCOL, KIND_MARKET, KIND_POSITION, KIND_AUTHORIZATION)

R = TypeVar("R")


def derive_key(kind: str, *parts: str) -> str:
    """Map (namespace, kind, parts...) to a storage key."""
    if kind not in _KINDS:
        raise ValueError(f"unknown record kind: {kind!r}")
    for part in parts:
        if not isinstance(part, str) or not part:
            raise ValueError("key parts must be non-empty strings")
        if "/" in part:
            raise ValueError(f"key part must not contain '/': {part!r}")
    return "/".join((KEY_NAMESPACE, kind) + tuple(parts))


def record_to_dict(record: Any) -> Dict[str, Any]:
    """Serialize a frozen-dataclass record to a plain dict."""
    out: Dict[str, Any] = {}
    for f in fields(record):
        value = getattr(record, f.name)
        out[f.name] = list(value) if isinstance(value, tuple) else value
    return out


def record_from_dict(cls: Type[R], d: Mapping[str, Any]) -> R:
    """Deserialize a dict to `cls`. Raises KeyError on missing fields."""
    kwargs: Dict[str, Any] = {}
    for f in fields(cls):  # type: ignore[arg-type]
        value = d[f.name]
        kwargs[f.name] = tuple(value) if isinstance(value, list) else value
    return cls(**kwargs)


def encode_record(record: Any) -> bytes:
    return canonical_json_bytes(record_to_dict(record))


def decode_record(cls: Type[R], data: bytes) -> R:
    obj = canonical_json_loads(data)
    if not isinstance(obj, dict):
        raise TypeError(f"stored {cls.__name__} must be a JSON object")
    return record_from_dict(cls, obj)


class AccountStore:
    """Interface for the external key-value store."""

    def read(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    def write(self, key: str, value: bytes) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def begin(self) -> None:
        raise NotImplementedError

    def commit(self) -> None:
        raise NotImplementedError

    def rollback(self) -> None:
        raise NotImplementedError

    @property
    def in_batch(self) -> bool:
        raise NotImplementedError


class MemoryAccountStore(AccountStore):
    """Dict-backed store with a single staged batch overlay."""

    def __init__(self) -> None:
        self._committed: Dict[str, bytes] = {}
        # key -> bytes, or None for a staged deletion
        self._staged: Optional[Dict[str, Optional[bytes]]] = None

    @property
    def in_batch(self) -> bool:
        return self._staged is not None

    def read(self, key: str) -> Optional[bytes]:
        if self._staged is not None and key in self._staged:
            return self._staged[key]
        return self._committed.get(key)

    def _require_batch(self) -> Dict[str, Optional[bytes]]:
        if self._staged is None:
            raise RuntimeError("writes require an open batch (call begin() first)")
        return self._staged

    def write(self, key: str, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError("stored values must be bytes")
        self._require_batch()[key] = bytes(value)

    def delete(self, key: str) -> None:
        self._require_batch()[key] = None

    def begin(self) -> None:
        if self._staged is not None:
            raise RuntimeError("a batch is already open")
        self._staged = {}

    def commit(self) -> None:
        staged = self._require_batch()
        for key, value in staged.items():
            if value is None:
                self._committed.pop(key, None)
            else:
                self._committed[key] = value
        self._staged = None

    def rollback(self) -> None:
        self._require_batch()
        self._staged = None

    def keys(self, prefix: str = "") -> list[str]:
        """Committed keys under `prefix`, sorted."""
        return sorted(k for k in self._committed if k.startswith(prefix))

    def __len__(self) -> int:
        return len(self._committed)
