"""Transaction processor: the only writer of the leave ledger and its balance cache.

Every write runs as one unit per scope (employee, leave type, cycle year):

1. Take the in-process scope lock
2. Lock (or create) the scope head row with SELECT FOR UPDATE
3. Read the latest balance by sequence
4. Plan the entry (balance checks, reversal checks, caller guard)
5. Validate the sign against the transaction type
6. Append the entry with the next sequence number
7. Advance the scope head and upsert the monthly balance cache
8. Write the audit row and commit

A unique (scope, sequence) constraint backs the locks up; a writer that loses
that race rolls back the whole unit and starts again from step 2.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col

from leave_ledger.config import get_settings
from leave_ledger.exceptions import (
    AppError,
    InsufficientBalanceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from leave_ledger.models.balance import EmployeeLeaveBalance
from leave_ledger.models.base import now_utc
from leave_ledger.models.enums import (
    CREDIT_TYPES,
    DEBIT_TYPES,
    AuditAction,
    ReferenceType,
    TransactionType,
)
from leave_ledger.models.ledger import LeaveLedgerEntry, LedgerScopeHead
from leave_ledger.schemas.ledger import LedgerEntryResponse, LedgerWriteResponse
from leave_ledger.services.audit import audit_ledger_entry
from leave_ledger.services.employee import get_employee_service
from leave_ledger.services.leave_type import get_leave_type, resolve_cycle_year
from leave_ledger.services.locks import ScopeKey, scope_locks

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.ledger import LedgerTransactionRequest

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
_CENT = Decimal("0.01")


# ---------------------------------------------------------------------------
# Result / plan carriers
# ---------------------------------------------------------------------------


@dataclass
class LedgerWriteResult:
    """An appended entry with the balance on either side of it."""

    entry: LeaveLedgerEntry
    previous_balance: Decimal
    new_balance: Decimal


@dataclass
class PlannedEntry:
    transaction_type: TransactionType
    amount: Decimal
    transaction_date: date
    reference_type: ReferenceType | None = None
    reference_id: str | None = None
    remarks: str | None = None
    reverses_transaction_id: uuid.UUID | None = None


# ---------------------------------------------------------------------------
# Pure helpers (no DB)
# ---------------------------------------------------------------------------


def signed_amount(transaction_type: TransactionType, magnitude: Decimal) -> Decimal:
    """Apply the sign required by the transaction type's class to a magnitude."""
    if transaction_type in CREDIT_TYPES:
        return abs(magnitude)
    if transaction_type in DEBIT_TYPES:
        return -abs(magnitude)
    raise ValidationError(f"Unknown transaction type: {transaction_type}")


def validate_entry_sign(transaction_type: TransactionType | str, amount: Decimal) -> None:
    """Reject an entry whose amount sign disagrees with its transaction type.

    Credit-like types must be >= 0 and debit-like types <= 0.
    """
    try:
        tx_type = TransactionType(transaction_type)
    except ValueError as exc:
        raise ValidationError(f"Unknown transaction type: {transaction_type}") from exc

    if tx_type in CREDIT_TYPES and amount < 0:
        raise ValidationError(f"{tx_type.value} entries must have a non-negative amount, got {amount}")
    if tx_type in DEBIT_TYPES and amount > 0:
        raise ValidationError(f"{tx_type.value} entries must have a non-positive amount, got {amount}")


def _normalize_magnitude(amount: Decimal | None) -> Decimal:
    if amount is None:
        raise ValidationError("amount is required")
    value = Decimal(amount)
    if not value.is_finite():
        raise ValidationError("amount must be a finite number")
    if value < 0:
        raise ValidationError("amount must be a magnitude (>= 0); the sign follows the transaction type")
    if value != value.quantize(_CENT):
        raise ValidationError("amount supports at most two decimal places")
    return value.quantize(_CENT)


def apply_entry_to_cache(row: EmployeeLeaveBalance, entry: LeaveLedgerEntry) -> None:
    """Fold one ledger entry into a monthly cache row.

    Reversals are totalled on the row of their own month and leave
    ``total_debited`` as booked.
    """
    amount = Decimal(entry.amount)
    tx_type = TransactionType(entry.transaction_type)

    if tx_type in (TransactionType.CREDIT, TransactionType.ADJUSTMENT_CREDIT):
        row.total_credited += amount
    elif tx_type in (TransactionType.DEBIT, TransactionType.ADJUSTMENT_DEBIT, TransactionType.PENALTY):
        row.total_debited += abs(amount)
    elif tx_type == TransactionType.REVERSAL:
        row.total_reversed += amount
    elif tx_type == TransactionType.CARRY_FORWARD:
        row.carried_forward += amount
    elif tx_type == TransactionType.ENCASHMENT:
        row.encashed += abs(amount)
    elif tx_type == TransactionType.LAPSE and entry.reference_type == ReferenceType.CARRY_FORWARD_PROCESS:
        row.carried_out += abs(amount)
    elif tx_type == TransactionType.LAPSE:
        row.lapsed += abs(amount)

    row.available_balance = Decimal(entry.balance_after_transaction)
    row.last_transaction_id = entry.id
    row.last_sequence = entry.sequence
    row.updated_at = now_utc()


def build_ledger_entry_response(entry: LeaveLedgerEntry) -> LedgerEntryResponse:
    """Map a ledger entry model to its response schema."""
    return LedgerEntryResponse(
        id=entry.id,
        employee_id=entry.employee_id,
        leave_type_id=entry.leave_type_id,
        leave_cycle_year=entry.leave_cycle_year,
        sequence=entry.sequence,
        transaction_type=TransactionType(entry.transaction_type),
        amount=entry.amount,
        balance_after_transaction=entry.balance_after_transaction,
        transaction_date=entry.transaction_date,
        reference_type=ReferenceType(entry.reference_type) if entry.reference_type else None,
        reference_id=entry.reference_id,
        remarks=entry.remarks,
        created_by=entry.created_by,
        reverses_transaction_id=entry.reverses_transaction_id,
        created_at=entry.created_at,
    )


def build_write_response(result: LedgerWriteResult) -> LedgerWriteResponse:
    return LedgerWriteResponse(
        ledger_entry=build_ledger_entry_response(result.entry),
        previous_balance=result.previous_balance,
        new_balance=result.new_balance,
    )


# ---------------------------------------------------------------------------
# DB-backed helpers
# ---------------------------------------------------------------------------


def _scope_filter(key: ScopeKey) -> list[object]:
    return [
        col(LeaveLedgerEntry.employee_id) == key.employee_id,
        col(LeaveLedgerEntry.leave_type_id) == key.leave_type_id,
        col(LeaveLedgerEntry.leave_cycle_year) == key.leave_cycle_year,
    ]


async def get_latest_entry(session: AsyncSession, key: ScopeKey) -> LeaveLedgerEntry | None:
    """Return the highest-sequence entry of a scope, or None for an empty scope."""
    result = await session.execute(
        select(LeaveLedgerEntry)
        .where(*_scope_filter(key))
        .order_by(col(LeaveLedgerEntry.sequence).desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_latest_balance(session: AsyncSession, key: ScopeKey) -> Decimal:
    """Balance snapshot of the scope's latest entry; 0 for an empty scope."""
    result = await session.execute(
        select(LeaveLedgerEntry.balance_after_transaction)
        .where(*_scope_filter(key))
        .order_by(col(LeaveLedgerEntry.sequence).desc())
        .limit(1)
    )
    balance = result.scalar_one_or_none()
    return ZERO if balance is None else Decimal(balance)


async def _lock_scope_head(
    session: AsyncSession,
    key: ScopeKey,
    company_id: uuid.UUID,
) -> LedgerScopeHead:
    """Get the scope head with a FOR UPDATE lock, creating it if absent."""
    result = await session.execute(
        select(LedgerScopeHead)
        .where(
            col(LedgerScopeHead.employee_id) == key.employee_id,
            col(LedgerScopeHead.leave_type_id) == key.leave_type_id,
            col(LedgerScopeHead.leave_cycle_year) == key.leave_cycle_year,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    head = result.scalar_one_or_none()

    if head is None:
        # Seed from the ledger so a lost head row never reuses a sequence.
        max_result = await session.execute(
            select(func.coalesce(func.max(LeaveLedgerEntry.sequence), 0)).where(*_scope_filter(key))
        )
        head = LedgerScopeHead(
            company_id=company_id,
            employee_id=key.employee_id,
            leave_type_id=key.leave_type_id,
            leave_cycle_year=key.leave_cycle_year,
            last_sequence=int(max_result.scalar_one()),
        )
        session.add(head)
        await session.flush()

    return head


async def _upsert_balance_cache(
    session: AsyncSession,
    entry: LeaveLedgerEntry,
    previous_balance: Decimal,
) -> EmployeeLeaveBalance:
    result = await session.execute(
        select(EmployeeLeaveBalance)
        .where(
            col(EmployeeLeaveBalance.employee_id) == entry.employee_id,
            col(EmployeeLeaveBalance.leave_type_id) == entry.leave_type_id,
            col(EmployeeLeaveBalance.year) == entry.leave_cycle_year,
            col(EmployeeLeaveBalance.month) == entry.transaction_date.month,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one_or_none()
    if row is None:
        row = EmployeeLeaveBalance(
            company_id=entry.company_id,
            employee_id=entry.employee_id,
            leave_type_id=entry.leave_type_id,
            year=entry.leave_cycle_year,
            month=entry.transaction_date.month,
            opening_balance=previous_balance,
            available_balance=previous_balance,
        )
        session.add(row)

    apply_entry_to_cache(row, entry)
    return row


async def write_ledger_unit(
    session: AsyncSession,
    *,
    key: ScopeKey,
    company_id: uuid.UUID,
    actor_id: uuid.UUID | None,
    plan: Callable[[AsyncSession, Decimal], Awaitable[PlannedEntry | None]],
    audit_action: AuditAction = AuditAction.CREATE,
) -> LedgerWriteResult | None:
    """Run one serialized append for a scope and commit it.

    ``plan`` receives the latest balance while the scope is locked and returns
    the entry to append, or None to write nothing. The session is rolled back
    on every failure, so nothing loaded through it before the call should be
    used afterwards.
    """
    retries = max(get_settings().ledger_write_retries, 1)

    async with scope_locks.hold(key):
        for attempt in range(1, retries + 1):
            try:
                head = await _lock_scope_head(session, key, company_id)
                latest = await get_latest_entry(session, key)
                previous_balance = ZERO if latest is None else Decimal(latest.balance_after_transaction)
                next_sequence = max(head.last_sequence, latest.sequence if latest is not None else 0) + 1

                planned = await plan(session, previous_balance)
                if planned is None:
                    await session.rollback()
                    return None

                validate_entry_sign(planned.transaction_type, planned.amount)
                new_balance = previous_balance + planned.amount

                entry = LeaveLedgerEntry(
                    company_id=company_id,
                    employee_id=key.employee_id,
                    leave_type_id=key.leave_type_id,
                    leave_cycle_year=key.leave_cycle_year,
                    sequence=next_sequence,
                    transaction_type=planned.transaction_type.value,
                    amount=planned.amount,
                    balance_after_transaction=new_balance,
                    transaction_date=planned.transaction_date,
                    reference_type=planned.reference_type.value if planned.reference_type else None,
                    reference_id=planned.reference_id,
                    remarks=planned.remarks,
                    created_by=actor_id,
                    reverses_transaction_id=planned.reverses_transaction_id,
                )
                session.add(entry)
                await session.flush()

                head.last_sequence = entry.sequence
                head.last_entry_id = entry.id
                head.updated_at = now_utc()

                await _upsert_balance_cache(session, entry, previous_balance)
                await session.flush()

                await audit_ledger_entry(session, entry, actor_id=actor_id, action=audit_action)

                await session.commit()
                return LedgerWriteResult(entry=entry, previous_balance=previous_balance, new_balance=new_balance)

            except IntegrityError as exc:
                await session.rollback()
                logger.warning(
                    "Concurrent ledger write on employee=%s leave_type=%s year=%s (attempt %d/%d)",
                    key.employee_id,
                    key.leave_type_id,
                    key.leave_cycle_year,
                    attempt,
                    retries,
                )
                if attempt == retries:
                    raise PersistenceError("Ledger write conflicted with a concurrent writer; retry later") from exc
            except AppError:
                await session.rollback()
                raise
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.exception("Ledger write failed for employee=%s", key.employee_id)
                raise PersistenceError("Ledger store is unavailable") from exc

    return None  # pragma: no cover


async def _resolve_scope(
    session: AsyncSession,
    company_id: uuid.UUID,
    request: LedgerTransactionRequest,
    transaction_date: date,
    *,
    require_employee: bool,
) -> ScopeKey:
    if require_employee:
        employee = await get_employee_service().get_employee(company_id, request.employee_id)
        if employee is None:
            raise NotFoundError("Employee not found")

    leave_type = await get_leave_type(session, request.leave_type_id, company_id)
    cycle_year = request.leave_cycle_year or resolve_cycle_year(leave_type, transaction_date)
    if not 2000 <= cycle_year <= 2100:
        raise ValidationError("leave_cycle_year must be between 2000 and 2100")

    return ScopeKey(
        employee_id=request.employee_id,
        leave_type_id=request.leave_type_id,
        leave_cycle_year=cycle_year,
    )


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


async def credit(
    session: AsyncSession,
    company_id: uuid.UUID,
    request: LedgerTransactionRequest,
    actor_id: uuid.UUID | None = None,
    *,
    guard: Callable[[AsyncSession, ScopeKey], Awaitable[bool]] | None = None,
    require_employee: bool = True,
) -> LedgerWriteResult | None:
    """Append a credit-class entry and commit.

    Zero amounts are recorded. Returns None only when ``guard`` declines the
    write.
    """
    tx_type = request.transaction_type or TransactionType.CREDIT
    if tx_type not in CREDIT_TYPES or tx_type == TransactionType.REVERSAL:
        raise ValidationError(f"{tx_type.value} is not a credit transaction type")

    magnitude = _normalize_magnitude(request.amount)
    transaction_date = request.transaction_date or date.today()
    key = await _resolve_scope(session, company_id, request, transaction_date, require_employee=require_employee)

    async def _plan(plan_session: AsyncSession, previous_balance: Decimal) -> PlannedEntry | None:
        if guard is not None and not await guard(plan_session, key):
            return None
        return PlannedEntry(
            transaction_type=tx_type,
            amount=signed_amount(tx_type, magnitude),
            transaction_date=transaction_date,
            reference_type=request.reference_type or ReferenceType.SYSTEM_CREDIT,
            reference_id=request.reference_id,
            remarks=request.remarks,
        )

    return await write_ledger_unit(session, key=key, company_id=company_id, actor_id=actor_id, plan=_plan)


async def debit(
    session: AsyncSession,
    company_id: uuid.UUID,
    request: LedgerTransactionRequest,
    actor_id: uuid.UUID | None = None,
    *,
    guard: Callable[[AsyncSession, ScopeKey], Awaitable[bool]] | None = None,
    require_employee: bool = True,
) -> LedgerWriteResult | None:
    """Append a debit-class entry and commit.

    Raises InsufficientBalanceError, writing nothing, when the amount exceeds
    the scope's latest balance.
    """
    tx_type = request.transaction_type or TransactionType.DEBIT
    if tx_type not in DEBIT_TYPES:
        raise ValidationError(f"{tx_type.value} is not a debit transaction type")

    magnitude = _normalize_magnitude(request.amount)
    if magnitude == 0:
        raise ValidationError("Debit amount must be greater than zero")
    transaction_date = request.transaction_date or date.today()
    key = await _resolve_scope(session, company_id, request, transaction_date, require_employee=require_employee)

    async def _plan(plan_session: AsyncSession, previous_balance: Decimal) -> PlannedEntry | None:
        if guard is not None and not await guard(plan_session, key):
            return None
        if magnitude > previous_balance:
            raise InsufficientBalanceError(available=previous_balance, required=magnitude)
        return PlannedEntry(
            transaction_type=tx_type,
            amount=signed_amount(tx_type, magnitude),
            transaction_date=transaction_date,
            reference_type=request.reference_type or ReferenceType.LEAVE_REQUEST,
            reference_id=request.reference_id,
            remarks=request.remarks,
        )

    return await write_ledger_unit(session, key=key, company_id=company_id, actor_id=actor_id, plan=_plan)
