from __future__ import annotations

from typing import Any, Optional, Sequence


class LedgerGatewayError(Exception):
    """
    Base for every failure the attestation / governance core reports upward.
    """


class ValidationError(LedgerGatewayError, ValueError):
    """
    Malformed input. Raised before any ledger call; the caller fixes input.
    """

    def __init__(self, field: str, reason: str):
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason


class ConfigurationError(LedgerGatewayError):
    """
    Missing or invalid connection / signing-identity setup. Not retryable.
    """


class SubmissionError(LedgerGatewayError):
    """
    The ledger rejected or failed to process a state-changing operation.

    rejected=True  -> the ledger gave a verdict (revert / pre-flight rejection).
    transaction_id -> set once the transaction was broadcast; a failure with a
                      transaction id and rejected=False has an unknown outcome.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        args: Sequence[Any] = (),
        transaction_id: Optional[str] = None,
        rejected: bool = False,
    ):
        super().__init__(message)
        self.operation = operation
        self.call_args = tuple(args)
        self.transaction_id = transaction_id
        self.rejected = rejected

    @property
    def outcome_known(self) -> bool:
        return self.rejected or self.transaction_id is None


class ReadError(LedgerGatewayError):
    """
    A lookup failed for a reason other than "record absent".
    """

    def __init__(self, message: str, *, query: str, args: Sequence[Any] = ()):
        super().__init__(message)
        self.query = query
        self.call_args = tuple(args)


class LedgerTimeoutError(LedgerGatewayError, TimeoutError):
    """
    No answer / confirmation within the bound. The outcome is unknown:
    callers must re-query ledger state instead of trusting either result.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        transaction_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.transaction_id = transaction_id


class _NotFound:
    """
    Sentinel for "the ledger has no such record". Not an error.
    """

    _instance: Optional["_NotFound"] = None

    def __new__(cls) -> "_NotFound":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()
