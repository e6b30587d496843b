from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class IdempotencyKeyRecord(Base):
    """
    Reservation for a ledger-submitting POST carrying an Idempotency-Key header.

    Scope is strict: (endpoint_key, idem_key) must be unique.

    state:
      pending   -> submission in flight
      unknown   -> submission timed out / lost after broadcast; never auto-retried
      completed -> response_json replayed for identical requests
    """
    __tablename__ = "idempotency_key_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    endpoint_key: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "POST:/api/v1/attestations"
    idem_key: Mapped[str] = mapped_column(String(128), nullable=False)

    request_hash: Mapped[str] = mapped_column(String(128), nullable=False)

    state: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    transaction_id: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)

    response_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    response_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("endpoint_key", "idem_key", name="uq_idem_scope"),
        Index("ix_idem_lookup", "endpoint_key", "idem_key"),
    )
