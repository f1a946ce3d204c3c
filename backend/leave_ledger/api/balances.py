# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from leave_ledger.api.deps import AdminDep, EmployeeReaderDep, validate_company_scope
from leave_ledger.db import SessionDep
from leave_ledger.models.enums import ReferenceType
from leave_ledger.schemas.balance import (
    LeaveBalanceBreakdownResponse,
    LeaveBalanceListResponse,
    RebuildBalanceResponse,
    SavedBalanceListResponse,
)
from leave_ledger.schemas.ledger import LedgerListResponse
from leave_ledger.services import balance as balance_service

employee_balance_router = APIRouter(
    prefix="/companies/{company_id}/employees/{employee_id}/leave-balances",
    tags=["balances"],
    dependencies=[Depends(validate_company_scope)],
)

employee_ledger_router = APIRouter(
    prefix="/companies/{company_id}/employees/{employee_id}/leave-ledger",
    tags=["ledger"],
    dependencies=[Depends(validate_company_scope)],
)


@employee_balance_router.get("", response_model=LeaveBalanceListResponse)
async def get_employee_balance(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: EmployeeReaderDep,
    cycle_year: int | None = Query(default=None, ge=2000, le=2100),
) -> LeaveBalanceListResponse:
    """Current balance per leave type of the employee's policy."""
    return await balance_service.get_employee_balance(session, auth.company_id, employee_id, cycle_year)


@employee_balance_router.get("/saved", response_model=SavedBalanceListResponse)
async def get_saved_balance(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: EmployeeReaderDep,
    cycle_year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
) -> SavedBalanceListResponse:
    """Monthly balance cache rows."""
    return await balance_service.get_saved_balance(
        session, auth.company_id, employee_id, cycle_year=cycle_year, month=month
    )


@employee_balance_router.post("/rebuild", response_model=RebuildBalanceResponse)
async def rebuild_balance_cache(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    leave_type_id: uuid.UUID | None = Query(default=None),
    cycle_year: int | None = Query(default=None, ge=2000, le=2100),
) -> RebuildBalanceResponse:
    """Regenerate the employee's balance cache from the ledger (admin only)."""
    return await balance_service.rebuild_balance_cache(
        session, auth.company_id, employee_id, leave_type_id=leave_type_id, cycle_year=cycle_year
    )


@employee_balance_router.get("/{leave_type_id}/breakdown", response_model=LeaveBalanceBreakdownResponse)
async def get_balance_breakdown(
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: EmployeeReaderDep,
    cycle_year: int | None = Query(default=None, ge=2000, le=2100),
) -> LeaveBalanceBreakdownResponse:
    """Per-class totals replayed from the scope's full ledger history."""
    return await balance_service.get_detailed_breakdown(
        session, auth.company_id, employee_id, leave_type_id, cycle_year
    )


@employee_ledger_router.get("", response_model=LedgerListResponse)
async def get_employee_ledger(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: EmployeeReaderDep,
    leave_type_id: uuid.UUID | None = Query(default=None),
    cycle_year: int | None = Query(default=None, ge=2000, le=2100),
    reference_type: ReferenceType | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LedgerListResponse:
    """Get paginated ledger entries for an employee, newest first."""
    return await balance_service.get_employee_ledger(
        session,
        auth.company_id,
        employee_id,
        leave_type_id=leave_type_id,
        cycle_year=cycle_year,
        reference_type=reference_type,
        offset=offset,
        limit=limit,
    )
