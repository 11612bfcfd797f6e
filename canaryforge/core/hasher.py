"""Canonical hashing helpers for content addressing and ledger sealing."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Serialize *obj* so equal values always hash equal.

    Keys are sorted, separators carry no whitespace and output is ASCII.
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def content_address(data: bytes) -> str:
    """``sha256:<hex>`` address of a stored gate report."""
    return f"sha256:{sha256_hex(data)}"


def compute_entry_hash(entry_dict: dict[str, Any]) -> str:
    """Seal for one ledger entry; ``entry_hash`` itself is left out."""
    sealed = {key: value for key, value in entry_dict.items() if key != "entry_hash"}
    return sha256_hex(canonical_json_bytes(sealed))
