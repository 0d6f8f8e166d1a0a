"""Ledger router for top-ups, transaction history and reconciliation."""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession, IdempotencyKey
from ..core.exceptions import ProblemDetailsException, ValidationError
from ..schemas.ledger import (
    ListTransactionsRequest,
    ReconcileRequest,
    ReconciliationReport,
    TopUpRequest,
    Transaction,
    TransactionList,
)
from ..services.ledger_service import LedgerService, transaction_view
from .idempotent import handle_idempotent_operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/ledger", tags=["ledger"])


@router.post("/topup", response_model=Transaction)
async def top_up(
    request: TopUpRequest,
    db: AsyncSession = DatabaseSession,
    idempotency_key: str = IdempotencyKey
) -> JSONResponse:
    """
    Record a partner top-up or an agent payment.

    This operation is idempotent based on the Idempotency-Key header.
    """
    ledger_service = LedgerService(db)

    async def operation():
        transaction = await ledger_service.top_up(request)
        names = await ledger_service.entity_names([transaction])
        return transaction_view(transaction, names).model_dump(mode="json")

    try:
        return await handle_idempotent_operation(
            method="ledger/topup",
            idempotency_key=idempotency_key,
            request_body=request.model_dump(mode="json"),
            operation_func=operation,
            db=db
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in top up",
            extra={
                "entity_type": request.entity_type.value,
                "entity_id": str(request.entity_id),
                "idempotency_key": idempotency_key,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/transactions", response_model=TransactionList)
async def list_transactions(
    request: ListTransactionsRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """List an agent's or partner's transactions, newest first."""
    ledger_service = LedgerService(db)
    transactions = await ledger_service.list_transactions(request)
    names = await ledger_service.entity_names(transactions)

    response_data = TransactionList(items=[transaction_view(t, names) for t in transactions])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/reconcile", response_model=ReconciliationReport)
async def reconcile(
    request: ReconcileRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Compare balances with transaction sums for one entity or for all of them."""
    ledger_service = LedgerService(db)

    if request.entity_id is not None:
        if request.entity_type is None:
            raise ValidationError(
                detail="entity_type is required when entity_id is given",
                errors={"entity_type": "required"},
            )
        items = [await ledger_service.reconcile(request.entity_type, request.entity_id)]
    else:
        items = await ledger_service.reconcile_all(request.entity_type)

    response_data = ReconciliationReport(
        items=items,
        inconsistent_count=sum(1 for item in items if not item.is_consistent),
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
