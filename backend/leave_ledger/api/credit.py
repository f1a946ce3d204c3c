# ruff: noqa: B008, TC001, TC003
"""API endpoints for credit cycle and cycle close triggers."""

from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query

from leave_ledger.api.deps import AdminDep, validate_company_scope
from leave_ledger.db import SessionDep, SessionFactoryDep
from leave_ledger.schemas.credit import CreditRunRequest, CreditRunResponse, CycleCloseResponse
from leave_ledger.services.carry_forward import close_cycle
from leave_ledger.services.credit_scheduler import run_credit_cycle
from leave_ledger.services.leave_type import get_leave_type

# ---------------------------------------------------------------------------
# Admin trigger: POST /leave-credit/run
# ---------------------------------------------------------------------------

credit_run_router = APIRouter(
    prefix="/leave-credit",
    tags=["credit"],
)


@credit_run_router.post("/run", response_model=CreditRunResponse)
async def run_credit(
    payload: CreditRunRequest,
    session_factory: SessionFactoryDep,
    _auth: AdminDep,
    run_date: date | None = Query(default=None),
) -> CreditRunResponse:
    """Manually run a credit cycle across all tenants (admin only).

    Re-running within the same period credits nothing new.
    """
    result = await run_credit_cycle(session_factory, payload.frequency, payload.day_of_month, today=run_date)
    return CreditRunResponse(
        frequency=result.frequency,
        day_of_month=result.day_of_month,
        run_date=result.run_date,
        tenants_processed=result.tenants_processed,
        transactions_created=result.transactions_created,
        skipped=result.skipped,
        errors=result.errors,
    )


# ---------------------------------------------------------------------------
# Admin trigger: POST /companies/{company_id}/leave-types/{leave_type_id}/cycle-close
# ---------------------------------------------------------------------------

cycle_close_router = APIRouter(
    prefix="/companies/{company_id}/leave-types",
    tags=["credit"],
    dependencies=[Depends(validate_company_scope)],
)


@cycle_close_router.post("/{leave_type_id}/cycle-close", response_model=CycleCloseResponse)
async def run_cycle_close(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    session_factory: SessionFactoryDep,
    auth: AdminDep,
    closing_cycle_year: int = Query(ge=2000, le=2100),
) -> CycleCloseResponse:
    """Carry forward and lapse a leave type's closing cycle (admin only)."""
    await get_leave_type(session, leave_type_id, auth.company_id)
    result = await close_cycle(session_factory, leave_type_id, closing_cycle_year)
    return CycleCloseResponse(
        leave_type_id=result.leave_type_id,
        closing_cycle_year=result.closing_cycle_year,
        scopes_processed=result.scopes_processed,
        carried_forward=result.carried_forward,
        lapsed=result.lapsed,
        skipped=result.skipped,
        errors=result.errors,
    )
