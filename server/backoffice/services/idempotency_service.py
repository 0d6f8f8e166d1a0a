"""Idempotency service for retried booking and ledger requests."""

import hashlib
import json
import logging
from datetime import datetime, timedelta
from typing import Any, NamedTuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import IdempotencyMismatchError
from ..models.idempotency import IdempotencyRecord

logger = logging.getLogger(__name__)

# Operations that post ledger transactions and therefore require a key
IDEMPOTENT_OPERATIONS = frozenset({"booking/create", "booking/reissue", "ledger/topup"})


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def request_fingerprint(method: str, request_body: dict[str, Any]) -> str:
    """SHA-256 of the operation name and the normalized request body."""
    return hashlib.sha256(f"{method}\n{_canonical_json(request_body)}".encode("utf-8")).hexdigest()


class StoredResponse(NamedTuple):
    """Response recorded for an Idempotency-Key."""

    status_code: int
    body: dict[str, Any]
    headers: dict[str, str]
    resource_id: str | None


class IdempotencyService:
    """Replays stored responses so a retried booking or top-up posts to the ledger once."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _find(self, idempotency_key: str, method: str) -> IdempotencyRecord | None:
        result = await self.db.execute(
            select(IdempotencyRecord).where(
                IdempotencyRecord.idempotency_key == idempotency_key,
                IdempotencyRecord.method == method,
                IdempotencyRecord.expires_at > datetime.utcnow(),
            )
        )
        return result.scalar_one_or_none()

    async def check_idempotency(
        self,
        idempotency_key: str,
        method: str,
        request_body: dict[str, Any]
    ) -> StoredResponse | None:
        """
        Look up the response stored for a key.

        Args:
            idempotency_key: Client supplied Idempotency-Key
            method: Operation name, e.g. "booking/create"
            request_body: Request body as sent

        Returns:
            The stored response, or None when the key has not been used yet

        Raises:
            ValueError: If the operation is not an idempotent one
            IdempotencyMismatchError: If the key was used with a different body
        """
        if method not in IDEMPOTENT_OPERATIONS:
            raise ValueError(f"{method} is not an idempotent operation")

        fingerprint = request_fingerprint(method, request_body)
        record = await self._find(idempotency_key, method)

        if record is None:
            return None

        if record.request_body_hash != fingerprint:
            logger.warning(
                "Idempotency key reused with a different request",
                extra={
                    "idempotency_key": idempotency_key,
                    "method": method,
                    "stored_hash": record.request_body_hash[:8],
                    "request_hash": fingerprint[:8],
                }
            )
            raise IdempotencyMismatchError(idempotency_key, method)

        logger.info(
            "Replaying stored response",
            extra={
                "idempotency_key": idempotency_key,
                "method": method,
                "status_code": record.response_status_code,
                "resource_id": record.resource_id,
            }
        )

        return StoredResponse(
            status_code=record.response_status_code,
            body=json.loads(record.response_body),
            headers=json.loads(record.response_headers) if record.response_headers else {},
            resource_id=record.resource_id,
        )

    async def store_response(
        self,
        idempotency_key: str,
        method: str,
        request_body: dict[str, Any],
        status_code: int,
        response_body: dict[str, Any],
        response_headers: dict[str, str] | None = None,
    ) -> None:
        """
        Record the outcome of an operation for later replay.

        Successful responses remember the ID of the booking or transaction
        they created. Business errors are stored as their problem details.
        """
        expires_at = datetime.utcnow() + timedelta(hours=settings.idempotency_ttl_hours)
        resource_id = response_body.get("id") if status_code < 400 else None

        record = IdempotencyRecord(
            idempotency_key=idempotency_key,
            method=method,
            request_body_hash=request_fingerprint(method, request_body),
            response_status_code=status_code,
            response_body=_canonical_json(response_body),
            response_headers=_canonical_json(response_headers) if response_headers else None,
            resource_id=str(resource_id) if resource_id is not None else None,
            expires_at=expires_at,
        )

        try:
            # Expired rows still hold the key+method unique constraint
            await self.db.execute(
                delete(IdempotencyRecord).where(
                    IdempotencyRecord.idempotency_key == idempotency_key,
                    IdempotencyRecord.method == method,
                    IdempotencyRecord.expires_at <= datetime.utcnow(),
                )
            )
            self.db.add(record)
            await self.db.commit()
        except IntegrityError:
            # A concurrent request with the same key stored first
            await self.db.rollback()
            logger.warning(
                "Idempotency record stored concurrently",
                extra={"idempotency_key": idempotency_key, "method": method}
            )
            return

        logger.info(
            "Stored idempotent response",
            extra={
                "idempotency_key": idempotency_key,
                "method": method,
                "status_code": status_code,
                "resource_id": record.resource_id,
                "expires_at": expires_at.isoformat(),
            }
        )

    async def cleanup_expired_records(self) -> int:
        """Delete expired records and return how many were removed."""
        result = await self.db.execute(
            delete(IdempotencyRecord).where(IdempotencyRecord.expires_at <= datetime.utcnow())
        )
        await self.db.commit()

        deleted_count = result.rowcount or 0
        if deleted_count:
            logger.info("Expired idempotency records removed", extra={"deleted_count": deleted_count})

        return deleted_count
