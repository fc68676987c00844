"""
Canonical encoding for ledger keys.

A key is the SHA-256 of a domain-separated canonical JSON array of key parts,
so one tuple derives one key on every process and platform. Parts are flat
scalars (identity strings and direction flags); nested values never occur.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Sequence, Union

CANONICAL_ENCODING_VERSION = 1

Scalar = Union[str, bool, int]

_HEX_CHARS_RE = re.compile(r"^[0-9a-fA-F]+$")


def _check_part(part: Scalar) -> None:
    if isinstance(part, float):
        raise TypeError("floats are not allowed in canonical encoding")
    if not isinstance(part, (str, bool, int)):
        raise TypeError(f"unsupported key part type {type(part).__name__}")
    # Lone surrogates have no UTF-8 encoding.
    if isinstance(part, str) and any(0xD800 <= ord(ch) <= 0xDFFF for ch in part):
        raise TypeError("surrogate code points are not allowed in canonical encoding")


def canonical_json_bytes(parts: Sequence[Scalar]) -> bytes:
    """Compact UTF-8 JSON array of *parts*, no whitespace, no NaN."""
    for part in parts:
        _check_part(part)
    text = json.dumps(list(parts), separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    return text.encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return "0x" + hashlib.sha256(data).hexdigest()


def domain_sep_bytes(label: str, version: int = CANONICAL_ENCODING_VERSION) -> bytes:
    """``margin-engine:<label>:v<version>\\0``; the NUL terminator keeps labels prefix-free."""
    if not isinstance(label, str) or not label:
        raise TypeError("label must be a non-empty str")
    if not label.isascii() or "\x00" in label:
        raise ValueError(f"label must be ASCII without NUL: {label!r}")
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError("version must be a positive int")
    return f"margin-engine:{label}:v{version}".encode("ascii") + b"\x00"


def canonical_hex_fixed_allow_0x(hex_str: str, *, nbytes: int, name: str) -> str:
    """Lowercase 0x-prefixed hex of exactly *nbytes* bytes; the prefix is optional on input."""
    if not isinstance(hex_str, str):
        raise TypeError(f"{name} must be a str")
    digits = hex_str.strip()
    if digits[:2] in ("0x", "0X"):
        digits = digits[2:]
    if len(digits) != 2 * nbytes or not _HEX_CHARS_RE.fullmatch(digits):
        raise ValueError(f"{name} must be {nbytes} bytes of hex, got {hex_str!r}")
    return "0x" + digits.lower()
