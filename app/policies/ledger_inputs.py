"""
Input checks shared by the attestation and governance services.

Every function is pure: it returns the normalized value or raises
ValidationError(field, reason). Nothing here touches the ledger.
"""
from __future__ import annotations

import re
from typing import Any, Iterable, Optional

from web3 import Web3

from app.core.errors import ValidationError
from app.ledger.types import ZERO_ADDRESS

DOC_HASH_RE = re.compile(r"0x[0-9a-fA-F]{64}")

# uint48 timestamps on the ledger
MAX_TIMESTAMP = 2**48 - 1


def _is_int(value: Any) -> bool:
    # bool is an int subclass but never a valid integer argument here
    return isinstance(value, int) and not isinstance(value, bool)


def require_doc_hash(field: str, value: Any) -> str:
    if not isinstance(value, str) or not DOC_HASH_RE.fullmatch(value):
        raise ValidationError(field, "must be 0x followed by 64 hex digits")
    return value.lower()


def require_non_empty_str(field: str, value: Any, *, max_length: Optional[int] = None) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "must be a non-empty string")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(field, f"must be at most {max_length} characters")
    return value


def require_bool(field: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(field, "must be a boolean")
    return value


def require_bounded_int(field: str, value: Any, *, lo: int, hi: int) -> int:
    if not _is_int(value):
        raise ValidationError(field, "must be an integer")
    if value < lo or value > hi:
        raise ValidationError(field, f"must be between {lo} and {hi}")
    return value


def require_positive_int(field: str, value: Any) -> int:
    if not _is_int(value):
        raise ValidationError(field, "must be an integer")
    if value <= 0:
        raise ValidationError(field, "must be a positive integer")
    return value


def require_choice(field: str, value: Any, choices: Iterable[int]) -> int:
    allowed = sorted(int(c) for c in choices)
    if not _is_int(value) or value not in allowed:
        raise ValidationError(field, f"must be one of {allowed}")
    return value


def require_time_window(start_time: Any, end_time: Any) -> tuple[int, int]:
    start = require_bounded_int("startTime", start_time, lo=0, hi=MAX_TIMESTAMP)
    end = require_bounded_int("endTime", end_time, lo=0, hi=MAX_TIMESTAMP)
    if end <= start:
        raise ValidationError("endTime", "must be greater than startTime")
    return start, end


def require_address(field: str, value: Any, *, default: Optional[str] = None) -> str:
    if value is None and default is not None:
        value = default
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValidationError(field, "must be a 20-byte hex address")
    return Web3.to_checksum_address(value)


def require_manager_address(value: Any) -> str:
    return require_address("manager", value, default=ZERO_ADDRESS)
