# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.exceptions import AlreadyReversedError, NotFoundError, NotReversibleError, PersistenceError
from leave_ledger.models.enums import REVERSIBLE_TYPES, AuditAction, ReferenceType, TransactionType
from leave_ledger.models.ledger import LeaveLedgerEntry
from leave_ledger.services.ledger import LedgerWriteResult, PlannedEntry, write_ledger_unit
from leave_ledger.services.locks import ScopeKey

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def find_reversal(session: AsyncSession, original_id: uuid.UUID) -> LeaveLedgerEntry | None:
    """Return the reversal entry pointing back at ``original_id``, if any."""
    result = await session.execute(
        select(LeaveLedgerEntry).where(col(LeaveLedgerEntry.reverses_transaction_id) == original_id)
    )
    return result.scalar_one_or_none()


async def reverse(
    session: AsyncSession,
    company_id: uuid.UUID,
    original_id: uuid.UUID,
    actor_id: uuid.UUID | None = None,
    *,
    remarks: str | None = None,
    transaction_date: date | None = None,
) -> LedgerWriteResult:
    """Append a compensating ``reversal`` entry for a debit-class entry.

    The reversal lands in the original's scope with ``+abs(original.amount)``
    and a back-reference, so the original itself is never touched.
    """
    original = await session.get(LeaveLedgerEntry, original_id)
    if original is None or original.company_id != company_id:
        raise NotFoundError("Ledger entry not found")

    if TransactionType(original.transaction_type) not in REVERSIBLE_TYPES:
        raise NotReversibleError(f"Cannot reverse a {original.transaction_type} entry")

    key = ScopeKey(
        employee_id=original.employee_id,
        leave_type_id=original.leave_type_id,
        leave_cycle_year=original.leave_cycle_year,
    )
    magnitude = abs(Decimal(original.amount))
    reference_id = original.reference_id

    async def _plan(plan_session: AsyncSession, _previous_balance: Decimal) -> PlannedEntry:
        if await find_reversal(plan_session, original_id) is not None:
            raise AlreadyReversedError("Ledger entry has already been reversed")
        return PlannedEntry(
            transaction_type=TransactionType.REVERSAL,
            amount=magnitude,
            transaction_date=transaction_date or date.today(),
            reference_type=ReferenceType.LEAVE_CANCELLATION,
            reference_id=reference_id,
            remarks=remarks or f"Reversal of transaction #{original_id}",
            reverses_transaction_id=original_id,
        )

    result = await write_ledger_unit(
        session,
        key=key,
        company_id=company_id,
        actor_id=actor_id,
        plan=_plan,
        audit_action=AuditAction.REVERSE,
    )
    if result is None:
        raise PersistenceError("Reversal was not written")
    logger.info("Reversed ledger entry %s with %s", original_id, result.entry.id)
    return result
