# ruff: noqa: B008, TC001, TC003
"""Admin write endpoints for the leave ledger."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Body, Depends, status

from leave_ledger.api.deps import AdminDep, validate_company_scope
from leave_ledger.db import SessionDep
from leave_ledger.exceptions import PersistenceError
from leave_ledger.schemas.ledger import LedgerTransactionRequest, LedgerWriteResponse, ReversalRequest
from leave_ledger.services import ledger as ledger_service
from leave_ledger.services import reversal as reversal_service

ledger_write_router = APIRouter(
    prefix="/companies/{company_id}/leave-ledger",
    tags=["ledger"],
    dependencies=[Depends(validate_company_scope)],
)


@ledger_write_router.post("/credits", response_model=LedgerWriteResponse, status_code=status.HTTP_201_CREATED)
async def post_credit(
    payload: LedgerTransactionRequest,
    session: SessionDep,
    auth: AdminDep,
) -> LedgerWriteResponse:
    """Append a credit-class entry."""
    result = await ledger_service.credit(session, auth.company_id, payload, auth.user_id)
    if result is None:
        raise PersistenceError("Ledger entry was not written")
    return ledger_service.build_write_response(result)


@ledger_write_router.post("/debits", response_model=LedgerWriteResponse, status_code=status.HTTP_201_CREATED)
async def post_debit(
    payload: LedgerTransactionRequest,
    session: SessionDep,
    auth: AdminDep,
) -> LedgerWriteResponse:
    """Append a debit-class entry; 409 when the balance does not cover it."""
    result = await ledger_service.debit(session, auth.company_id, payload, auth.user_id)
    if result is None:
        raise PersistenceError("Ledger entry was not written")
    return ledger_service.build_write_response(result)


@ledger_write_router.post(
    "/{entry_id}/reversal",
    response_model=LedgerWriteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_reversal(
    entry_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    payload: ReversalRequest | None = Body(default=None),
) -> LedgerWriteResponse:
    """Compensate a debit, adjustment_debit or penalty entry."""
    result = await reversal_service.reverse(
        session,
        auth.company_id,
        entry_id,
        auth.user_id,
        remarks=payload.remarks if payload is not None else None,
    )
    return ledger_service.build_write_response(result)
