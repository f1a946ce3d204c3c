"""Cycle close: carry a closing cycle's balance forward and lapse the remainder.

For every employee with entries in the closing cycle of a leave type:

1. Carry out: ``zero`` carries nothing, ``all`` the whole balance, ``specific``
   at most ``max_carry_forward_count``. The amount leaves the closing cycle as
   a ``lapse`` debit with reference ``carry_forward_process`` on its last day.
2. Carry in: the same amount lands as a ``carry_forward`` credit on the first
   day of the next cycle.
3. Lapse: when ``lapse_balance_before_next_cycle`` is set, whatever is left in
   the closing cycle is debited as ``lapse`` with reference ``year_end_lapse``.

The closing cycle is never left holding days that now also exist in the next
one. Each step checks for its own marker entry first, so a re-run only
completes what an earlier run left unfinished.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.exceptions import ValidationError
from leave_ledger.models.enums import CarryForwardLimit, ReferenceType, TransactionType
from leave_ledger.models.ledger import LeaveLedgerEntry
from leave_ledger.services.leave_type import get_leave_type
from leave_ledger.services.ledger import PlannedEntry, write_ledger_unit
from leave_ledger.services.locks import ScopeKey

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class CycleCloseResult:
    """Result of closing one leave type's cycle."""

    leave_type_id: uuid.UUID
    closing_cycle_year: int
    scopes_processed: int = 0
    carried_forward: int = 0
    lapsed: int = 0
    skipped: int = 0
    errors: int = 0


@dataclass
class _CarryRule:
    limit: CarryForwardLimit
    max_count: Decimal | None
    lapse: bool
    cycle_start_month: int


# ---------------------------------------------------------------------------
# Pure helpers (no DB)
# ---------------------------------------------------------------------------


def compute_carry_amount(balance: Decimal, limit: CarryForwardLimit, max_count: Decimal | None) -> Decimal:
    """How much of ``balance`` moves into the next cycle."""
    if balance <= 0 or limit == CarryForwardLimit.ZERO:
        return ZERO
    if limit == CarryForwardLimit.ALL:
        return balance
    return min(balance, max(Decimal(max_count or 0), ZERO))


def cycle_boundaries(closing_cycle_year: int, cycle_start_month: int) -> tuple[date, date]:
    """Return (last day of the closing cycle, first day of the next cycle)."""
    next_start = date(closing_cycle_year + 1, cycle_start_month, 1)
    return next_start - timedelta(days=1), next_start


# ---------------------------------------------------------------------------
# DB-backed helpers
# ---------------------------------------------------------------------------


async def _find_marker(
    session: AsyncSession,
    key: ScopeKey,
    transaction_type: TransactionType,
    reference_type: ReferenceType,
    reference_id: str,
) -> LeaveLedgerEntry | None:
    result = await session.execute(
        select(LeaveLedgerEntry)
        .where(
            col(LeaveLedgerEntry.employee_id) == key.employee_id,
            col(LeaveLedgerEntry.leave_type_id) == key.leave_type_id,
            col(LeaveLedgerEntry.leave_cycle_year) == key.leave_cycle_year,
            col(LeaveLedgerEntry.transaction_type) == transaction_type.value,
            col(LeaveLedgerEntry.reference_type) == reference_type.value,
            col(LeaveLedgerEntry.reference_id) == reference_id,
        )
        .order_by(col(LeaveLedgerEntry.sequence).desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _find_closing_scopes(
    session: AsyncSession,
    leave_type_id: uuid.UUID,
    closing_cycle_year: int,
) -> list[tuple[uuid.UUID, uuid.UUID]]:
    """(company_id, employee_id) pairs with entries in the closing cycle."""
    result = await session.execute(
        select(LeaveLedgerEntry.company_id, LeaveLedgerEntry.employee_id)
        .where(
            col(LeaveLedgerEntry.leave_type_id) == leave_type_id,
            col(LeaveLedgerEntry.leave_cycle_year) == closing_cycle_year,
        )
        .distinct()
    )
    return [(row.company_id, row.employee_id) for row in result.all()]


def _following(closing: ScopeKey) -> ScopeKey:
    return ScopeKey(
        employee_id=closing.employee_id,
        leave_type_id=closing.leave_type_id,
        leave_cycle_year=closing.leave_cycle_year + 1,
    )


async def _carry_out_scope(
    session: AsyncSession,
    company_id: uuid.UUID,
    closing: ScopeKey,
    rule: _CarryRule,
) -> bool:
    """Debit the carried amount from the closing cycle. Returns True if written."""
    cycle_end, _ = cycle_boundaries(closing.leave_cycle_year, rule.cycle_start_month)
    reference_id = f"{closing.leave_cycle_year}"

    async def _plan(plan_session: AsyncSession, previous_balance: Decimal) -> PlannedEntry | None:
        marker = await _find_marker(
            plan_session, closing, TransactionType.LAPSE, ReferenceType.CARRY_FORWARD_PROCESS, reference_id
        )
        if marker is not None:
            return None
        amount = compute_carry_amount(previous_balance, rule.limit, rule.max_count)
        if amount <= 0:
            return None
        return PlannedEntry(
            transaction_type=TransactionType.LAPSE,
            amount=-amount,
            transaction_date=cycle_end,
            reference_type=ReferenceType.CARRY_FORWARD_PROCESS,
            reference_id=reference_id,
            remarks=f"Carried forward to cycle {closing.leave_cycle_year + 1}",
        )

    written = await write_ledger_unit(session, key=closing, company_id=company_id, actor_id=None, plan=_plan)
    return written is not None


async def _carry_in_scope(
    session: AsyncSession,
    company_id: uuid.UUID,
    closing: ScopeKey,
    rule: _CarryRule,
) -> bool:
    """Credit the next cycle with what left the closing cycle. Returns True if written."""
    _, next_start = cycle_boundaries(closing.leave_cycle_year, rule.cycle_start_month)
    following = _following(closing)
    reference_id = f"{closing.leave_cycle_year}"

    async def _plan(plan_session: AsyncSession, _previous_balance: Decimal) -> PlannedEntry | None:
        marker = await _find_marker(
            plan_session, following, TransactionType.CARRY_FORWARD, ReferenceType.CARRY_FORWARD_PROCESS, reference_id
        )
        if marker is not None:
            return None
        carried_out = await _find_marker(
            plan_session, closing, TransactionType.LAPSE, ReferenceType.CARRY_FORWARD_PROCESS, reference_id
        )
        if carried_out is None:
            return None
        return PlannedEntry(
            transaction_type=TransactionType.CARRY_FORWARD,
            amount=abs(Decimal(carried_out.amount)),
            transaction_date=next_start,
            reference_type=ReferenceType.CARRY_FORWARD_PROCESS,
            reference_id=reference_id,
            remarks=f"Carry forward from cycle {closing.leave_cycle_year}",
        )

    written = await write_ledger_unit(session, key=following, company_id=company_id, actor_id=None, plan=_plan)
    return written is not None


async def _lapse_scope(
    session: AsyncSession,
    company_id: uuid.UUID,
    closing: ScopeKey,
    rule: _CarryRule,
) -> bool:
    """Debit whatever is still left in the closing cycle. Returns True if written."""
    cycle_end, _ = cycle_boundaries(closing.leave_cycle_year, rule.cycle_start_month)
    reference_id = f"{closing.leave_cycle_year}"

    async def _plan(plan_session: AsyncSession, previous_balance: Decimal) -> PlannedEntry | None:
        marker = await _find_marker(
            plan_session, closing, TransactionType.LAPSE, ReferenceType.YEAR_END_LAPSE, reference_id
        )
        if marker is not None or previous_balance <= 0:
            return None
        return PlannedEntry(
            transaction_type=TransactionType.LAPSE,
            amount=-previous_balance,
            transaction_date=cycle_end,
            reference_type=ReferenceType.YEAR_END_LAPSE,
            reference_id=reference_id,
            remarks=f"Year end lapse for cycle {closing.leave_cycle_year}",
        )

    written = await write_ledger_unit(session, key=closing, company_id=company_id, actor_id=None, plan=_plan)
    return written is not None

# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


async def close_cycle(
    session_factory: async_sessionmaker[AsyncSession],
    leave_type_id: uuid.UUID,
    closing_cycle_year: int,
) -> CycleCloseResult:
    """Close ``closing_cycle_year`` for one leave type across every employee scope.

    Each employee is its own unit with its own sessions; a failure is logged
    and counted and the run moves on.
    """
    async with session_factory() as session:
        leave_type = await get_leave_type(session, leave_type_id)
        try:
            limit = CarryForwardLimit(leave_type.max_leaves_to_carry_forward)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown carry forward limit: {leave_type.max_leaves_to_carry_forward}"
            ) from exc
        rule = _CarryRule(
            limit=limit,
            max_count=leave_type.max_carry_forward_count,
            lapse=leave_type.lapse_balance_before_next_cycle,
            cycle_start_month=leave_type.cycle_start_month or 1,
        )
        scopes = await _find_closing_scopes(session, leave_type_id, closing_cycle_year)

    result = CycleCloseResult(leave_type_id=leave_type_id, closing_cycle_year=closing_cycle_year)

    for company_id, employee_id in scopes:
        result.scopes_processed += 1
        closing = ScopeKey(employee_id=employee_id, leave_type_id=leave_type_id, leave_cycle_year=closing_cycle_year)
        try:
            wrote = False
            async with session_factory() as session:
                await _carry_out_scope(session, company_id, closing, rule)
            async with session_factory() as session:
                if await _carry_in_scope(session, company_id, closing, rule):
                    result.carried_forward += 1
                    wrote = True
            if rule.lapse:
                async with session_factory() as session:
                    if await _lapse_scope(session, company_id, closing, rule):
                        result.lapsed += 1
                        wrote = True
            if not wrote:
                result.skipped += 1
        except Exception:
            logger.exception(
                "Cycle close failed for employee=%s leave_type=%s year=%s",
                employee_id,
                leave_type_id,
                closing_cycle_year,
            )
            result.errors += 1

    logger.info(
        "Closed cycle %s for leave_type=%s: scopes=%d carried=%d lapsed=%d errors=%d",
        closing_cycle_year,
        leave_type_id,
        result.scopes_processed,
        result.carried_forward,
        result.lapsed,
        result.errors,
    )
    return result
