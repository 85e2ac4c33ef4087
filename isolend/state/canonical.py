"""
Canonical JSON for stored records and content-derived ids.

Records hold only strings, integers, booleans, None and lists/objects of
those. Amounts can exceed 2**64, so they must never pass through a float;
both directions reject floats outright.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def _check_value(value: Any, path: str) -> None:
    if value is None or isinstance(value, (bool, int)):
        return
    if isinstance(value, float):
        raise TypeError(f"{path}: floats are not allowed in stored records")
    if isinstance(value, str):
        if any(0xD800 <= ord(ch) <= 0xDFFF for ch in value):
            raise TypeError(f"{path}: surrogate code points are not encodable")
        return
    if isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            _check_value(item, f"{path}[{i}]")
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"{path}: object keys must be str, got {type(key).__name__}")
            _check_value(key, path)
            _check_value(item, f"{path}.{key}")
        return
    raise TypeError(f"{path}: {type(value).__name__} is not encodable")


def canonical_json_bytes(value: Any) -> bytes:
    """UTF-8 JSON with sorted keys and no whitespace; identical input, identical bytes."""
    _check_value(value, "$")
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def _no_float(text: str) -> Any:
    raise TypeError(f"stored record contains a float: {text}")


def canonical_json_loads(data: bytes) -> Any:
    """Decode bytes written by `canonical_json_bytes`."""
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError("canonical data must be bytes")
    return json.loads(bytes(data).decode("utf-8"), parse_float=_no_float, parse_constant=_no_float)


def sha256_hex(data: bytes) -> str:
    return "0x" + hashlib.sha256(data).hexdigest()


def domain_sep_bytes(label: str, version: int = 1) -> bytes:
    """
    Prefix for hashed payloads: ``b"isolend:<label>:v<version>\\x00"``.

    The trailing NUL keeps label and payload from running into each other.
    """
    if not isinstance(label, str) or not label.isascii() or not label or "\x00" in label:
        raise ValueError(f"label must be a non-empty ASCII string without NUL: {label!r}")
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError("version must be a positive int")
    return f"isolend:{label}:v{version}".encode("ascii") + b"\x00"
