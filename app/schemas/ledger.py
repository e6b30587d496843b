from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from app.ledger.types import LedgerStatus, Receipt


class ReceiptOut(BaseModel):
    """
    Confirmation evidence for a ledger submission.
    """
    transactionId: str
    confirmedAt: int = Field(..., ge=0, description="block timestamp (unix seconds)")
    blockNumber: int = Field(..., ge=0)
    explorerUrl: Optional[str] = None

    @classmethod
    def from_receipt(cls, receipt: Receipt, explorer_base_url: Optional[str] = None) -> "ReceiptOut":
        url = None
        if explorer_base_url:
            url = f"{explorer_base_url.rstrip('/')}/tx/{receipt.transaction_id}"
        return cls(
            transactionId=receipt.transaction_id,
            confirmedAt=receipt.confirmed_at,
            blockNumber=receipt.block_number,
            explorerUrl=url,
        )


class LedgerStatusOut(BaseModel):
    configured: bool
    connected: bool = False
    account: Optional[str] = None
    chainId: Optional[int] = None
    latestBlock: Optional[int] = None
    balanceWei: Optional[str] = Field(default=None, description="decimal string; exceeds JSON number range")

    @classmethod
    def from_status(cls, status: LedgerStatus) -> "LedgerStatusOut":
        return cls(
            configured=True,
            connected=status.connected,
            account=status.account,
            chainId=status.chain_id,
            latestBlock=status.latest_block,
            balanceWei=str(status.balance_wei) if status.balance_wei is not None else None,
        )


class ErrorOut(BaseModel):
    error: str
    detail: str
    field: Optional[str] = None
    reason: Optional[str] = None
    operation: Optional[str] = None
    transactionId: Optional[str] = None
    outcome: Optional[str] = Field(default=None, description="known | unknown")
