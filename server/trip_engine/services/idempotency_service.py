"""Idempotency service for replaying responses to repeated mutating requests."""

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import ProblemDetailsException
from ..models.idempotency import IdempotencyRecord

logger = logging.getLogger(__name__)


class IdempotencyMismatchError(ProblemDetailsException):
    """Exception when idempotency key is reused with a different request body."""

    def __init__(self, idempotency_key: str, operation: str):
        super().__init__(
            status_code=422,
            title="Idempotency Key Mismatch",
            code="IDEMPOTENCY_KEY_MISMATCH",
            detail=f"Idempotency key '{idempotency_key}' was already used for '{operation}' with a different request body",
            type_uri="https://example.com/problems/idempotency-key-mismatch",
            extensions={
                "idempotency_key": idempotency_key,
                "operation": operation,
            },
        )


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def compute_request_hash(request_body: dict[str, Any]) -> str:
    """SHA-256 of the request body with keys sorted."""
    normalized = json.dumps(request_body, sort_keys=True, separators=(',', ':'), default=str)
    return hashlib.sha256(normalized.encode('utf-8')).hexdigest()


class IdempotencyService:
    """Stores and replays responses keyed by (Idempotency-Key, operation)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lookup(
        self,
        idempotency_key: str,
        operation: str,
        request_body: dict[str, Any],
    ) -> tuple[int, dict[str, Any]] | None:
        """
        Find a stored response for this key and operation.

        Returns:
            (status_code, response_body) of the stored response, or None for a new request

        Raises:
            IdempotencyMismatchError: If the key was used with a different request body
        """
        stmt = select(IdempotencyRecord).where(
            IdempotencyRecord.idempotency_key == idempotency_key,
            IdempotencyRecord.operation == operation
        )
        result = await self.db.execute(stmt)
        record = result.scalar_one_or_none()
        if record is None:
            return None

        if _as_utc(record.expires_at) <= datetime.now(timezone.utc):
            await self._purge_expired(record)
            return None

        if record.request_hash != compute_request_hash(request_body):
            logger.warning(
                "Idempotency key mismatch",
                extra={"idempotency_key": idempotency_key, "operation": operation}
            )
            raise IdempotencyMismatchError(idempotency_key, operation)

        logger.info(
            "Returning stored idempotent response",
            extra={
                "idempotency_key": idempotency_key,
                "operation": operation,
                "status_code": record.response_status_code
            }
        )
        return record.response_status_code, json.loads(record.response_body)

    async def remember(
        self,
        idempotency_key: str,
        operation: str,
        request_body: dict[str, Any],
        status_code: int,
        response_body: dict[str, Any],
    ) -> None:
        """Store a response; a concurrent duplicate store is ignored."""
        record = IdempotencyRecord(
            idempotency_key=idempotency_key,
            operation=operation,
            request_hash=compute_request_hash(request_body),
            response_status_code=status_code,
            response_body=json.dumps(response_body, sort_keys=True, separators=(',', ':')),
            expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.idempotency_ttl_hours),
        )

        try:
            self.db.add(record)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.info(
                "Idempotency record already exists (race condition)",
                extra={"idempotency_key": idempotency_key, "operation": operation, "error": str(e)}
            )

    async def _purge_expired(self, record: IdempotencyRecord) -> None:
        """Delete an expired record so its key can be used again."""
        logger.info(
            "Removing expired idempotency record",
            extra={"idempotency_key": record.idempotency_key, "operation": record.operation}
        )
        await self.db.execute(delete(IdempotencyRecord).where(IdempotencyRecord.id == record.id))
        await self.db.commit()


async def run_idempotent(
    db: AsyncSession,
    idempotency_key: str,
    operation: str,
    request: BaseModel,
    func: Callable[[], Awaitable[BaseModel]],
    status_code: int = 200,
) -> JSONResponse:
    """
    Run ``func`` at most once per idempotency key.

    Successful responses and non-retryable problem responses are stored and
    replayed; retryable problems are not stored so a retry can succeed.
    """
    service = IdempotencyService(db)
    request_body = request.model_dump(mode="json")

    stored = await service.lookup(idempotency_key, operation, request_body)
    if stored:
        stored_status, stored_body = stored
        media_type = "application/problem+json" if stored_status >= 400 else "application/json"
        return JSONResponse(status_code=stored_status, content=stored_body, media_type=media_type)

    try:
        result = await func()
    except ProblemDetailsException as e:
        if not e.retryable:
            await service.remember(idempotency_key, operation, request_body, e.status_code, e.problem_details)
        raise

    response_body = result.model_dump(mode="json")
    await service.remember(idempotency_key, operation, request_body, status_code, response_body)
    return JSONResponse(status_code=status_code, content=response_body)
