"""Credit scheduler: periodic auto-credit of leave entitlements across all tenants."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.exceptions import ValidationError
from leave_ledger.models.enums import (
    SCHEDULED_FREQUENCIES,
    CreditFrequency,
    EmployeeStatus,
    ReferenceType,
    TransactionType,
)
from leave_ledger.models.ledger import LeaveLedgerEntry
from leave_ledger.schemas.ledger import LedgerTransactionRequest
from leave_ledger.services.company import get_company_service
from leave_ledger.services.eligibility import is_employee_eligible
from leave_ledger.services.employee import get_employee_service
from leave_ledger.services.leave_type import resolve_cycle_year
from leave_ledger.services.ledger import credit
from leave_ledger.services.policy import list_policy_leave_types

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from leave_ledger.models.leave_type import LeaveType
    from leave_ledger.services.employee import EmployeeInfo
    from leave_ledger.services.locks import ScopeKey

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass
class CreditRunResult:
    """Summary of one credit cycle run."""

    frequency: CreditFrequency
    run_date: date
    day_of_month: int | None = None
    tenants_processed: int = 0
    transactions_created: int = 0
    skipped: int = 0
    errors: int = 0


@dataclass
class _CreditUnit:
    company_id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_type_code: str
    cycle_year: int
    amount: Decimal


# ---------------------------------------------------------------------------
# Pure computation helpers (no DB)
# ---------------------------------------------------------------------------


def _same_bucket(frequency: CreditFrequency, last: date, today: date) -> bool:
    """True when ``last`` and ``today`` fall in the same credit period.

    MONTHLY:     same calendar month
    QUARTERLY:   same Jan-Mar / Apr-Jun / Jul-Sep / Oct-Dec quarter
    HALF_YEARLY: same Jan-Jun / Jul-Dec half
    YEARLY:      same calendar year
    """
    if last.year != today.year:
        return False
    if frequency == CreditFrequency.MONTHLY:
        return last.month == today.month
    if frequency == CreditFrequency.QUARTERLY:
        return (last.month - 1) // 3 == (today.month - 1) // 3
    if frequency == CreditFrequency.HALF_YEARLY:
        return (last.month <= 6) == (today.month <= 6)
    return True


def select_credit_amount(leave_type: LeaveType, status: EmployeeStatus) -> Decimal:
    """Pick the amount to credit for an employee status, rounding half up when configured.

    Active, probation and intern use their override when set, else the leave
    type default. Separated uses its override or nothing. Absconded,
    terminated and suspended are credited 0.
    """
    default = Decimal(leave_type.number_of_leaves_to_credit or 0)
    amount: Decimal | None
    if status == EmployeeStatus.ACTIVE:
        amount = leave_type.active_leaves_to_credit
    elif status == EmployeeStatus.PROBATION:
        amount = leave_type.probation_leaves_to_credit
    elif status == EmployeeStatus.INTERN:
        amount = leave_type.intern_leaves_to_credit
    elif status == EmployeeStatus.SEPARATED:
        amount = leave_type.separated_leaves_to_credit if leave_type.separated_leaves_to_credit is not None else ZERO
    else:
        if status == EmployeeStatus.SUSPENDED:
            logger.warning("Leave type %s has no credit amount for suspended employees; crediting 0", leave_type.code)
        amount = ZERO

    result = default if amount is None else Decimal(amount)
    if leave_type.round_off_credited_leaves:
        result = result.quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return result


def frequencies_due(today: date) -> list[tuple[CreditFrequency, int]]:
    """Return the (frequency, day filter) pairs the daily trigger runs on ``today``."""
    due = [(CreditFrequency.MONTHLY, today.day)]
    if today.day == 1:
        if today.month in (1, 4, 7, 10):
            due.append((CreditFrequency.QUARTERLY, 1))
        if today.month in (1, 7):
            due.append((CreditFrequency.HALF_YEARLY, 1))
        if today.month == 1:
            due.append((CreditFrequency.YEARLY, 1))
    return due


# ---------------------------------------------------------------------------
# DB-backed helpers
# ---------------------------------------------------------------------------


async def get_last_auto_credit_date(session: AsyncSession, key: ScopeKey) -> date | None:
    """Transaction date of the scope's most recent scheduled credit."""
    result = await session.execute(
        select(LeaveLedgerEntry.transaction_date)
        .where(
            col(LeaveLedgerEntry.employee_id) == key.employee_id,
            col(LeaveLedgerEntry.leave_type_id) == key.leave_type_id,
            col(LeaveLedgerEntry.leave_cycle_year) == key.leave_cycle_year,
            col(LeaveLedgerEntry.transaction_type) == TransactionType.CREDIT.value,
            col(LeaveLedgerEntry.reference_type) == ReferenceType.AUTO_CREDIT.value,
        )
        .order_by(col(LeaveLedgerEntry.sequence).desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _collect_units(
    session: AsyncSession,
    employees: list[EmployeeInfo],
    frequency: CreditFrequency,
    day_of_month: int | None,
    today: date,
    result: CreditRunResult,
) -> list[_CreditUnit]:
    """Expand employees into eligible (employee, leave type) credit units."""
    units: list[_CreditUnit] = []
    for employee in employees:
        if employee.leave_policy_id is None:
            continue
        leave_types = await list_policy_leave_types(
            session,
            employee.leave_policy_id,
            frequency=frequency,
            day_of_month=day_of_month,
        )
        for leave_type in leave_types:
            if not is_employee_eligible(employee, leave_type):
                logger.debug("Employee %s not eligible for leave type %s", employee.id, leave_type.code)
                result.skipped += 1
                continue
            units.append(
                _CreditUnit(
                    company_id=employee.company_id,
                    employee_id=employee.id,
                    leave_type_id=leave_type.id,
                    leave_type_code=leave_type.code,
                    cycle_year=resolve_cycle_year(leave_type, today),
                    amount=select_credit_amount(leave_type, employee.status),
                )
            )
    return units


async def _credit_unit(
    session: AsyncSession,
    unit: _CreditUnit,
    frequency: CreditFrequency,
    today: date,
) -> bool:
    """Credit one unit unless it was already credited this period. Returns True if written."""

    async def _not_yet_credited(guard_session: AsyncSession, key: ScopeKey) -> bool:
        last = await get_last_auto_credit_date(guard_session, key)
        return last is None or not _same_bucket(frequency, last, today)

    request = LedgerTransactionRequest(
        employee_id=unit.employee_id,
        leave_type_id=unit.leave_type_id,
        amount=unit.amount,
        leave_cycle_year=unit.cycle_year,
        transaction_type=TransactionType.CREDIT,
        reference_type=ReferenceType.AUTO_CREDIT,
        remarks=f"Auto credit - {frequency.value}",
        transaction_date=today,
    )
    written = await credit(session, unit.company_id, request, guard=_not_yet_credited)
    return written is not None


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


async def run_credit_cycle(
    session_factory: async_sessionmaker[AsyncSession],
    frequency: CreditFrequency,
    day_of_month: int | None = None,
    *,
    today: date | None = None,
) -> CreditRunResult:
    """Credit every eligible (employee, leave type) pair configured for ``frequency``.

    Each unit commits in its own session, so a failure is logged and counted
    without touching units already written, and a re-run skips any unit that
    was credited earlier in the same period.
    """
    if frequency not in SCHEDULED_FREQUENCIES:
        raise ValidationError(f"Credit frequency {frequency} cannot be scheduled")
    if day_of_month is not None and not 1 <= day_of_month <= 31:
        raise ValidationError("day_of_month must be between 1 and 31")

    if today is None:
        today = date.today()

    result = CreditRunResult(frequency=frequency, run_date=today, day_of_month=day_of_month)
    employee_service = get_employee_service()

    for company in await get_company_service().list_companies():
        result.tenants_processed += 1
        try:
            employees = [e for e in await employee_service.list_employees(company.id) if e.is_active]
            async with session_factory() as session:
                units = await _collect_units(session, employees, frequency, day_of_month, today, result)
        except Exception:
            logger.exception("Error loading credit units for company=%s", company.id)
            result.errors += 1
            continue

        for unit in units:
            try:
                async with session_factory() as session:
                    if await _credit_unit(session, unit, frequency, today):
                        result.transactions_created += 1
                    else:
                        logger.debug(
                            "Skipping employee=%s leave_type=%s: already credited this period",
                            unit.employee_id,
                            unit.leave_type_code,
                        )
                        result.skipped += 1
            except Exception:
                logger.exception(
                    "Error crediting employee=%s leave_type=%s",
                    unit.employee_id,
                    unit.leave_type_code,
                )
                result.errors += 1

    logger.info(
        "Credit run %s (day=%s) on %s: tenants=%d created=%d skipped=%d errors=%d",
        frequency.value,
        day_of_month,
        today.isoformat(),
        result.tenants_processed,
        result.transactions_created,
        result.skipped,
        result.errors,
    )
    return result


async def run_daily_credit_cycle(
    session_factory: async_sessionmaker[AsyncSession],
    today: date | None = None,
) -> list[CreditRunResult]:
    """Run every credit cycle that is due on ``today``."""
    if today is None:
        today = date.today()
    return [
        await run_credit_cycle(session_factory, frequency, day_of_month, today=today)
        for frequency, day_of_month in frequencies_due(today)
    ]
