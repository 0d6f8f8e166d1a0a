"""Idempotent execution of money-moving operations."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..services.idempotency_service import IdempotencyService
from ..core.exceptions import ProblemDetailsException

logger = logging.getLogger(__name__)


async def handle_idempotent_operation(
    method: str,
    idempotency_key: str,
    request_body: dict[str, Any],
    operation_func: Callable[[], Awaitable[dict[str, Any]]],
    db: AsyncSession
) -> JSONResponse:
    """
    Run an operation once per Idempotency-Key and replay its stored response.

    Business errors are stored too, so a retried request that failed gets
    the same problem back instead of running again.
    """
    idempotency_service = IdempotencyService(db)

    stored = await idempotency_service.check_idempotency(
        idempotency_key=idempotency_key,
        method=method,
        request_body=request_body
    )

    if stored is not None:
        return JSONResponse(
            status_code=stored.status_code,
            content=stored.body,
            headers={**stored.headers, "Idempotent-Replayed": "true"}
        )

    try:
        response_dict = await operation_func()
        status_code = 200

        await idempotency_service.store_response(
            idempotency_key=idempotency_key,
            method=method,
            request_body=request_body,
            status_code=status_code,
            response_body=response_dict
        )

        return JSONResponse(
            status_code=status_code,
            content=response_dict
        )

    except ProblemDetailsException as e:
        # Discard the failed unit of work before recording the problem
        await db.rollback()
        await idempotency_service.store_response(
            idempotency_key=idempotency_key,
            method=method,
            request_body=request_body,
            status_code=e.status_code,
            response_body=e.problem_details
        )
        logger.info(
            "Stored failed idempotent operation",
            extra={
                "method": method,
                "idempotency_key": idempotency_key,
                "status_code": e.status_code
            }
        )
        raise
