from __future__ import annotations

import hashlib
import json
from typing import Any, Dict

from web3 import Web3


def canonical_hash(payload: Dict[str, Any]) -> str:
    """
    SHA-256 of canonical JSON representation.
    Deterministic: sorted keys, no whitespace variance.
    """
    s = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def document_fingerprint(content: bytes) -> str:
    """
    keccak-256 of the raw document bytes, "0x" + 64 lowercase hex.
    Same digest the ledger contracts use for bytes32 document keys.
    """
    return "0x" + Web3.keccak(primitive=content).hex()
