"""Tests for the credit scheduler: period buckets, amounts, idempotency and failure isolation."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import select
from sqlmodel import col

from leave_ledger.exceptions import InsufficientBalanceError, ValidationError
from leave_ledger.models.enums import CreditFrequency, EmployeeStatus, ReferenceType
from leave_ledger.models.leave_type import LeaveType
from leave_ledger.models.ledger import LeaveLedgerEntry
from leave_ledger.models.policy import LeavePolicyMapping
from leave_ledger.schemas.ledger import LedgerTransactionRequest
from leave_ledger.services import credit_scheduler
from leave_ledger.services.company import CompanyInfo
from leave_ledger.services.credit_scheduler import (
    _same_bucket,
    frequencies_due,
    run_credit_cycle,
    run_daily_credit_cycle,
    select_credit_amount,
)
from leave_ledger.services.ledger import debit

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tests.conftest import LeaveSetup

RUN_DATE = date(2026, 3, 15)


async def _entries(session_factory: async_sessionmaker[AsyncSession], employee_id: uuid.UUID) -> list[LeaveLedgerEntry]:
    async with session_factory() as session:
        result = await session.execute(
            select(LeaveLedgerEntry)
            .where(col(LeaveLedgerEntry.employee_id) == employee_id)
            .order_by(col(LeaveLedgerEntry.leave_type_id), col(LeaveLedgerEntry.sequence))
        )
        return list(result.scalars().all())


async def _update_leave_type(
    session_factory: async_sessionmaker[AsyncSession],
    leave_type_id: uuid.UUID,
    **fields: Any,
) -> None:
    async with session_factory() as session:
        leave_type = await session.get(LeaveType, leave_type_id)
        assert leave_type is not None
        for name, value in fields.items():
            setattr(leave_type, name, value)
        await session.commit()


def _leave_type(**fields: Any) -> LeaveType:
    base: dict[str, Any] = {
        "company_id": uuid.uuid4(),
        "code": "CL",
        "name": "Casual",
        "number_of_leaves_to_credit": Decimal("2"),
    }
    base.update(fields)
    return LeaveType(**base)


# ---------------------------------------------------------------------------
# Period buckets
# ---------------------------------------------------------------------------


def test_monthly_bucket() -> None:
    assert _same_bucket(CreditFrequency.MONTHLY, date(2026, 3, 1), date(2026, 3, 31))
    assert not _same_bucket(CreditFrequency.MONTHLY, date(2026, 2, 28), date(2026, 3, 1))
    assert not _same_bucket(CreditFrequency.MONTHLY, date(2025, 3, 15), date(2026, 3, 15))


def test_quarterly_bucket() -> None:
    assert _same_bucket(CreditFrequency.QUARTERLY, date(2026, 4, 1), date(2026, 6, 30))
    assert not _same_bucket(CreditFrequency.QUARTERLY, date(2026, 3, 31), date(2026, 4, 1))


def test_half_yearly_bucket() -> None:
    assert _same_bucket(CreditFrequency.HALF_YEARLY, date(2026, 1, 1), date(2026, 6, 30))
    assert not _same_bucket(CreditFrequency.HALF_YEARLY, date(2026, 6, 30), date(2026, 7, 1))


def test_yearly_bucket() -> None:
    assert _same_bucket(CreditFrequency.YEARLY, date(2026, 1, 1), date(2026, 12, 31))
    assert not _same_bucket(CreditFrequency.YEARLY, date(2025, 12, 31), date(2026, 1, 1))


def test_frequencies_due_mid_month() -> None:
    assert frequencies_due(date(2026, 5, 20)) == [(CreditFrequency.MONTHLY, 20)]


def test_frequencies_due_on_new_year() -> None:
    assert frequencies_due(date(2026, 1, 1)) == [
        (CreditFrequency.MONTHLY, 1),
        (CreditFrequency.QUARTERLY, 1),
        (CreditFrequency.HALF_YEARLY, 1),
        (CreditFrequency.YEARLY, 1),
    ]


def test_frequencies_due_on_quarter_start() -> None:
    assert frequencies_due(date(2026, 10, 1)) == [(CreditFrequency.MONTHLY, 1), (CreditFrequency.QUARTERLY, 1)]


# ---------------------------------------------------------------------------
# Amount selection
# ---------------------------------------------------------------------------


def test_probation_override_selected() -> None:
    leave_type = _leave_type(probation_leaves_to_credit=Decimal("1"))
    assert select_credit_amount(leave_type, EmployeeStatus.PROBATION) == Decimal("1")


def test_active_without_override_uses_default() -> None:
    assert select_credit_amount(_leave_type(), EmployeeStatus.ACTIVE) == Decimal("2")


def test_explicit_zero_override_honored() -> None:
    leave_type = _leave_type(intern_leaves_to_credit=Decimal("0"))
    assert select_credit_amount(leave_type, EmployeeStatus.INTERN) == Decimal("0")


def test_separated_without_override_gets_nothing() -> None:
    assert select_credit_amount(_leave_type(), EmployeeStatus.SEPARATED) == Decimal("0")
    leave_type = _leave_type(separated_leaves_to_credit=Decimal("0.5"))
    assert select_credit_amount(leave_type, EmployeeStatus.SEPARATED) == Decimal("0.5")


@pytest.mark.parametrize("status", [EmployeeStatus.ABSCONDED, EmployeeStatus.TERMINATED, EmployeeStatus.SUSPENDED])
def test_inactive_statuses_get_nothing(status: EmployeeStatus) -> None:
    assert select_credit_amount(_leave_type(), status) == Decimal("0")


def test_suspended_logs_missing_field(caplog: pytest.LogCaptureFixture) -> None:
    select_credit_amount(_leave_type(), EmployeeStatus.SUSPENDED)
    assert "suspended" in caplog.text


def test_rounding_is_half_up() -> None:
    assert select_credit_amount(
        _leave_type(number_of_leaves_to_credit=Decimal("1.5"), round_off_credited_leaves=True), EmployeeStatus.ACTIVE
    ) == Decimal("2")
    assert select_credit_amount(
        _leave_type(number_of_leaves_to_credit=Decimal("2.5"), round_off_credited_leaves=True), EmployeeStatus.ACTIVE
    ) == Decimal("3")
    assert select_credit_amount(
        _leave_type(number_of_leaves_to_credit=Decimal("1.49"), round_off_credited_leaves=True), EmployeeStatus.ACTIVE
    ) == Decimal("1")


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------


async def test_run_credits_eligible_employee(
    session_factory: async_sessionmaker[AsyncSession],
    leave_setup: LeaveSetup,
) -> None:
    result = await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, today=RUN_DATE)

    assert result.tenants_processed == 1
    assert result.transactions_created == 1
    assert result.errors == 0
    entries = await _entries(session_factory, leave_setup.employee_id)
    assert len(entries) == 1
    assert entries[0].reference_type == ReferenceType.AUTO_CREDIT.value
    assert entries[0].remarks == "Auto credit - monthly"
    assert entries[0].transaction_date == RUN_DATE
    assert entries[0].amount == Decimal("1")


async def test_run_twice_in_same_month_credits_once(
    session_factory: async_sessionmaker[AsyncSession],
    leave_setup: LeaveSetup,
) -> None:
    await _update_leave_type(session_factory, leave_setup.leave_type_id, credit_day_of_month=15)

    first = await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, 15, today=RUN_DATE)
    second = await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, 15, today=date(2026, 3, 28))

    assert first.transactions_created == 1
    assert second.transactions_created == 0
    assert second.skipped == 1
    assert len(await _entries(session_factory, leave_setup.employee_id)) == 1


async def test_next_month_credits_again(
    session_factory: async_sessionmaker[AsyncSession],
    leave_setup: LeaveSetup,
) -> None:
    await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, today=RUN_DATE)
    result = await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, today=date(2026, 4, 15))

    assert result.transactions_created == 1
    entries = await _entries(session_factory, leave_setup.employee_id)
    assert entries[-1].balance_after_transaction == Decimal("2")


async def test_day_filter_excludes_other_days(
    session_factory: async_sessionmaker[AsyncSession],
    leave_setup: LeaveSetup,
) -> None:
    await _update_leave_type(session_factory, leave_setup.leave_type_id, credit_day_of_month=1)

    result = await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, 15, today=RUN_DATE)

    assert result.transactions_created == 0
    assert await _entries(session_factory, leave_setup.employee_id) == []


async def test_frequency_filter_excludes_other_frequencies(
    session_factory: async_sessionmaker[AsyncSession],
    leave_setup: LeaveSetup,
) -> None:
    result = await run_credit_cycle(session_factory, CreditFrequency.YEARLY, today=RUN_DATE)

    assert result.transactions_created == 0


async def test_probation_employee_gets_probation_amount(
    session_factory: async_sessionmaker[AsyncSession],
    leave_setup: LeaveSetup,
    add_employee: Any,
) -> None:
    await _update_leave_type(
        session_factory,
        leave_setup.leave_type_id,
        number_of_leaves_to_credit=Decimal("2"),
        probation_leaves_to_credit=Decimal("1"),
    )
    probationer = add_employee(leave_setup.company_id, leave_setup.policy_id, status=EmployeeStatus.PROBATION)

    await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, today=RUN_DATE)

    entries = await _entries(session_factory, probationer.id)
    assert [e.amount for e in entries] == [Decimal("1")]


async def test_ineligible_employee_is_skipped(
    session_factory: async_sessionmaker[AsyncSession],
    leave_setup: LeaveSetup,
    add_employee: Any,
) -> None:
    await _update_leave_type(session_factory, leave_setup.leave_type_id, applicable_to_gender="male")

    result = await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, today=RUN_DATE)

    assert result.transactions_created == 0
    assert result.skipped == 1
    assert result.errors == 0


async def test_inactive_and_unassigned_employees_ignored(
    session_factory: async_sessionmaker[AsyncSession],
    leave_setup: LeaveSetup,
    add_employee: Any,
) -> None:
    add_employee(leave_setup.company_id, leave_setup.policy_id, is_active=False)
    add_employee(leave_setup.company_id, None)

    result = await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, today=RUN_DATE)

    assert result.transactions_created == 1


async def test_deactivated_mapping_not_credited(
    session_factory: async_sessionmaker[AsyncSession],
    leave_setup: LeaveSetup,
) -> None:
    async with session_factory() as session:
        mapping = await session.get(LeavePolicyMapping, leave_setup.mapping_id)
        assert mapping is not None
        mapping.is_active = False
        await session.commit()

    result = await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, today=RUN_DATE)

    assert result.transactions_created == 0


async def test_zero_amount_credit_marks_period(
    session_factory: async_sessionmaker[AsyncSession],
    leave_setup: LeaveSetup,
) -> None:
    await _update_leave_type(session_factory, leave_setup.leave_type_id, active_leaves_to_credit=Decimal("0"))

    first = await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, today=RUN_DATE)
    second = await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, today=RUN_DATE)

    assert first.transactions_created == 1
    assert second.transactions_created == 0
    entries = await _entries(session_factory, leave_setup.employee_id)
    assert [e.amount for e in entries] == [Decimal("0")]


async def test_failing_unit_does_not_stop_run(
    session_factory: async_sessionmaker[AsyncSession],
    leave_setup: LeaveSetup,
    add_employee: Any,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    broken = add_employee(leave_setup.company_id, leave_setup.policy_id)
    original_credit = credit_scheduler.credit

    async def _flaky_credit(session: AsyncSession, company_id: uuid.UUID, request: Any, *args: Any, **kwargs: Any):  # noqa: ANN202
        if request.employee_id == broken.id:
            raise RuntimeError("employee service timeout")
        return await original_credit(session, company_id, request, *args, **kwargs)

    monkeypatch.setattr(credit_scheduler, "credit", _flaky_credit)

    result = await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, today=RUN_DATE)

    assert result.errors == 1
    assert result.transactions_created == 1
    assert len(await _entries(session_factory, leave_setup.employee_id)) == 1
    assert await _entries(session_factory, broken.id) == []


async def test_multiple_tenants_processed(
    session_factory: async_sessionmaker[AsyncSession],
    leave_setup: LeaveSetup,
    company_service: Any,
) -> None:
    company_service.seed(CompanyInfo(id=uuid.uuid4(), name="Empty Co"))

    result = await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, today=RUN_DATE)

    assert result.tenants_processed == 2
    assert result.transactions_created == 1


async def test_unschedulable_frequency_rejected(session_factory: async_sessionmaker[AsyncSession]) -> None:
    with pytest.raises(ValidationError):
        await run_credit_cycle(session_factory, CreditFrequency.MANUAL, today=RUN_DATE)


async def test_daily_trigger_runs_monthly_by_day(
    session_factory: async_sessionmaker[AsyncSession],
    leave_setup: LeaveSetup,
) -> None:
    await _update_leave_type(session_factory, leave_setup.leave_type_id, credit_day_of_month=15)

    results = await run_daily_credit_cycle(session_factory, RUN_DATE)

    assert [r.frequency for r in results] == [CreditFrequency.MONTHLY]
    assert results[0].transactions_created == 1


async def test_end_to_end_rounded_monthly_credit(
    session_factory: async_sessionmaker[AsyncSession],
    leave_setup: LeaveSetup,
) -> None:
    await _update_leave_type(
        session_factory,
        leave_setup.leave_type_id,
        number_of_leaves_to_credit=Decimal("1.5"),
        round_off_credited_leaves=True,
    )

    await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, today=RUN_DATE)
    entries = await _entries(session_factory, leave_setup.employee_id)
    assert entries[-1].balance_after_transaction == Decimal("2")

    await run_credit_cycle(session_factory, CreditFrequency.MONTHLY, today=RUN_DATE)
    entries = await _entries(session_factory, leave_setup.employee_id)
    assert len(entries) == 1
    assert entries[-1].balance_after_transaction == Decimal("2")

    def _debit_request(amount: str) -> LedgerTransactionRequest:
        return LedgerTransactionRequest(
            employee_id=leave_setup.employee_id,
            leave_type_id=leave_setup.leave_type_id,
            amount=Decimal(amount),
            transaction_date=RUN_DATE,
        )

    async with session_factory() as session:
        result = await debit(session, leave_setup.company_id, _debit_request("1"))
        assert result is not None
        assert result.new_balance == Decimal("1")

    async with session_factory() as session:
        with pytest.raises(InsufficientBalanceError):
            await debit(session, leave_setup.company_id, _debit_request("5"))

    entries = await _entries(session_factory, leave_setup.employee_id)
    assert entries[-1].balance_after_transaction == Decimal("1")
