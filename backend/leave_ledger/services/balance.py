"""Balance query engine: reads over the ledger and the monthly balance cache."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select
from sqlmodel import col

from leave_ledger.exceptions import NotFoundError
from leave_ledger.models.balance import EmployeeLeaveBalance
from leave_ledger.models.enums import ReferenceType, TransactionType
from leave_ledger.models.ledger import LeaveLedgerEntry
from leave_ledger.schemas.balance import (
    LeaveBalanceBreakdownResponse,
    LeaveBalanceItem,
    LeaveBalanceListResponse,
    RebuildBalanceResponse,
    SavedBalanceListResponse,
    SavedBalanceResponse,
)
from leave_ledger.schemas.ledger import LedgerListResponse
from leave_ledger.services.employee import get_employee_service
from leave_ledger.services.leave_type import build_rule_summary, get_leave_type, resolve_cycle_year
from leave_ledger.services.ledger import apply_entry_to_cache, build_ledger_entry_response, get_latest_balance
from leave_ledger.services.locks import ScopeKey
from leave_ledger.services.policy import list_policy_leave_types

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.services.employee import EmployeeInfo

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


async def _require_employee(company_id: uuid.UUID, employee_id: uuid.UUID) -> EmployeeInfo:
    employee = await get_employee_service().get_employee(company_id, employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")
    return employee


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_employee_balance(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    cycle_year: int | None = None,
) -> LeaveBalanceListResponse:
    """Current balance per leave type of the employee's policy, in display order.

    Only the latest entry of each scope is read. Without ``cycle_year`` each
    leave type's current cycle is used.
    """
    employee = await _require_employee(company_id, employee_id)
    if employee.leave_policy_id is None:
        raise NotFoundError("Employee has no leave policy assigned")

    today = date.today()
    items: list[LeaveBalanceItem] = []
    for leave_type in await list_policy_leave_types(session, employee.leave_policy_id):
        year = cycle_year if cycle_year is not None else resolve_cycle_year(leave_type, today)
        key = ScopeKey(employee_id=employee_id, leave_type_id=leave_type.id, leave_cycle_year=year)
        items.append(
            LeaveBalanceItem(
                leave_type_id=leave_type.id,
                code=leave_type.code,
                leave_cycle_year=year,
                available_balance=await get_latest_balance(session, key),
                rule_summary=build_rule_summary(leave_type),
            )
        )

    return LeaveBalanceListResponse(employee_id=employee_id, items=items, total=len(items))


async def get_detailed_breakdown(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    cycle_year: int | None = None,
) -> LeaveBalanceBreakdownResponse:
    """Replay every entry in one scope into per-class totals.

    Reversals count towards ``total_reversed`` and reduce ``total_debited``.
    Days carried into the next cycle count towards ``total_carried_out``, not
    ``total_lapsed``.
    """
    await _require_employee(company_id, employee_id)
    leave_type = await get_leave_type(session, leave_type_id, company_id)
    year = cycle_year if cycle_year is not None else resolve_cycle_year(leave_type, date.today())

    result = await session.execute(
        select(LeaveLedgerEntry)
        .where(
            col(LeaveLedgerEntry.employee_id) == employee_id,
            col(LeaveLedgerEntry.leave_type_id) == leave_type_id,
            col(LeaveLedgerEntry.leave_cycle_year) == year,
        )
        .order_by(col(LeaveLedgerEntry.sequence))
    )
    entries = list(result.scalars().all())

    credited = debited = carried = carried_out = encashed = lapsed = reversed_total = ZERO
    for entry in entries:
        amount = Decimal(entry.amount)
        tx_type = TransactionType(entry.transaction_type)
        if tx_type in (TransactionType.CREDIT, TransactionType.ADJUSTMENT_CREDIT):
            credited += amount
        elif tx_type in (TransactionType.DEBIT, TransactionType.ADJUSTMENT_DEBIT, TransactionType.PENALTY):
            debited += abs(amount)
        elif tx_type == TransactionType.REVERSAL:
            reversed_total += amount
            debited -= amount
        elif tx_type == TransactionType.CARRY_FORWARD:
            carried += amount
        elif tx_type == TransactionType.ENCASHMENT:
            encashed += abs(amount)
        elif tx_type == TransactionType.LAPSE and entry.reference_type == ReferenceType.CARRY_FORWARD_PROCESS:
            carried_out += abs(amount)
        elif tx_type == TransactionType.LAPSE:
            lapsed += abs(amount)

    current = Decimal(entries[-1].balance_after_transaction) if entries else ZERO
    return LeaveBalanceBreakdownResponse(
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        leave_cycle_year=year,
        total_credited=credited,
        total_debited=debited,
        total_carried_forward=carried,
        total_carried_out=carried_out,
        total_encashed=encashed,
        total_lapsed=lapsed,
        total_reversed=reversed_total,
        current_balance=current,
        transaction_count=len(entries),
    )


async def get_employee_ledger(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    *,
    leave_type_id: uuid.UUID | None = None,
    cycle_year: int | None = None,
    reference_type: ReferenceType | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LedgerListResponse:
    """Get paginated ledger entries for an employee, newest first."""
    base_filter = [
        col(LeaveLedgerEntry.company_id) == company_id,
        col(LeaveLedgerEntry.employee_id) == employee_id,
    ]
    if leave_type_id is not None:
        base_filter.append(col(LeaveLedgerEntry.leave_type_id) == leave_type_id)
    if cycle_year is not None:
        base_filter.append(col(LeaveLedgerEntry.leave_cycle_year) == cycle_year)
    if reference_type is not None:
        base_filter.append(col(LeaveLedgerEntry.reference_type) == reference_type.value)

    count_result = await session.execute(select(func.count()).select_from(LeaveLedgerEntry).where(*base_filter))
    total = count_result.scalar_one()

    entries_result = await session.execute(
        select(LeaveLedgerEntry)
        .where(*base_filter)
        .order_by(
            col(LeaveLedgerEntry.transaction_date).desc(),
            col(LeaveLedgerEntry.created_at).desc(),
            col(LeaveLedgerEntry.sequence).desc(),
        )
        .offset(offset)
        .limit(limit)
    )
    entries = list(entries_result.scalars().all())

    return LedgerListResponse(items=[build_ledger_entry_response(e) for e in entries], total=total)


async def get_saved_balance(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    *,
    cycle_year: int | None = None,
    month: int | None = None,
) -> SavedBalanceListResponse:
    """Read monthly balance cache rows for an employee."""
    filters = [
        col(EmployeeLeaveBalance.company_id) == company_id,
        col(EmployeeLeaveBalance.employee_id) == employee_id,
    ]
    if cycle_year is not None:
        filters.append(col(EmployeeLeaveBalance.year) == cycle_year)
    if month is not None:
        filters.append(col(EmployeeLeaveBalance.month) == month)

    result = await session.execute(
        select(EmployeeLeaveBalance)
        .where(*filters)
        .order_by(
            col(EmployeeLeaveBalance.leave_type_id),
            col(EmployeeLeaveBalance.year),
            col(EmployeeLeaveBalance.month),
        )
    )
    rows = list(result.scalars().all())
    items = [
        SavedBalanceResponse(
            leave_type_id=row.leave_type_id,
            year=row.year,
            month=row.month,
            opening_balance=row.opening_balance,
            total_credited=row.total_credited,
            total_debited=row.total_debited,
            carried_forward=row.carried_forward,
            carried_out=row.carried_out,
            encashed=row.encashed,
            lapsed=row.lapsed,
            total_reversed=row.total_reversed,
            available_balance=row.available_balance,
            last_transaction_id=row.last_transaction_id,
            updated_at=row.updated_at,
        )
        for row in rows
    ]
    return SavedBalanceListResponse(items=items, total=len(items))


# ---------------------------------------------------------------------------
# Cache maintenance
# ---------------------------------------------------------------------------


async def rebuild_balance_cache(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    *,
    leave_type_id: uuid.UUID | None = None,
    cycle_year: int | None = None,
) -> RebuildBalanceResponse:
    """Drop the employee's cache rows and regenerate them from the ledger.

    Entries are replayed per scope in sequence order; the ledger itself is
    only read.
    """
    cache_filter = [
        col(EmployeeLeaveBalance.company_id) == company_id,
        col(EmployeeLeaveBalance.employee_id) == employee_id,
    ]
    ledger_filter = [
        col(LeaveLedgerEntry.company_id) == company_id,
        col(LeaveLedgerEntry.employee_id) == employee_id,
    ]
    if leave_type_id is not None:
        cache_filter.append(col(EmployeeLeaveBalance.leave_type_id) == leave_type_id)
        ledger_filter.append(col(LeaveLedgerEntry.leave_type_id) == leave_type_id)
    if cycle_year is not None:
        cache_filter.append(col(EmployeeLeaveBalance.year) == cycle_year)
        ledger_filter.append(col(LeaveLedgerEntry.leave_cycle_year) == cycle_year)

    deleted = await session.execute(delete(EmployeeLeaveBalance).where(*cache_filter))

    result = await session.execute(
        select(LeaveLedgerEntry)
        .where(*ledger_filter)
        .order_by(
            col(LeaveLedgerEntry.leave_type_id),
            col(LeaveLedgerEntry.leave_cycle_year),
            col(LeaveLedgerEntry.sequence),
        )
    )
    entries = list(result.scalars().all())

    rows: dict[tuple[uuid.UUID, int, int], EmployeeLeaveBalance] = {}
    running: dict[tuple[uuid.UUID, int], Decimal] = {}
    for entry in entries:
        scope = (entry.leave_type_id, entry.leave_cycle_year)
        row_key = (entry.leave_type_id, entry.leave_cycle_year, entry.transaction_date.month)
        row = rows.get(row_key)
        if row is None:
            previous = running.get(scope, ZERO)
            row = EmployeeLeaveBalance(
                company_id=company_id,
                employee_id=employee_id,
                leave_type_id=entry.leave_type_id,
                year=entry.leave_cycle_year,
                month=entry.transaction_date.month,
                opening_balance=previous,
                available_balance=previous,
            )
            rows[row_key] = row
            session.add(row)
        apply_entry_to_cache(row, entry)
        running[scope] = Decimal(entry.balance_after_transaction)

    await session.commit()

    logger.info(
        "Rebuilt balance cache for employee=%s: %d rows from %d entries",
        employee_id,
        len(rows),
        len(entries),
    )
    return RebuildBalanceResponse(
        employee_id=employee_id,
        rows_deleted=deleted.rowcount or 0,
        rows_written=len(rows),
        entries_replayed=len(entries),
    )
