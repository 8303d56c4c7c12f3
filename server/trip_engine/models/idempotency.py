"""Idempotency record model definition."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class IdempotencyRecord(Base):
    """Stored response of a mutating request, replayed for repeated Idempotency-Key values."""

    __tablename__ = "idempotency_records"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    operation: Mapped[str] = mapped_column(String(100), nullable=False)

    # SHA-256 of the canonical request body
    request_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    response_status_code: Mapped[int] = mapped_column(Integer, nullable=False)
    response_body: Mapped[str] = mapped_column(Text, nullable=False)

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("length(idempotency_key) > 0", name="ck_idempotency_key_not_empty"),
        CheckConstraint("length(request_hash) = 64", name="ck_idempotency_hash_length"),
        CheckConstraint(
            "response_status_code >= 100 AND response_status_code <= 599",
            name="ck_idempotency_status_code_valid"
        ),
        UniqueConstraint("idempotency_key", "operation", name="uq_idempotency_key_operation"),
    )

    def __repr__(self) -> str:
        return (
            f"<IdempotencyRecord(id={self.id}, key='{self.idempotency_key}', "
            f"operation='{self.operation}', status={self.response_status_code})>"
        )
