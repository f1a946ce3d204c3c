# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.exceptions import NotFoundError
from leave_ledger.models.leave_type import LeaveType

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


def resolve_cycle_year(leave_type: LeaveType, on_date: date) -> int:
    """Return the leave cycle year that ``on_date`` falls in.

    A cycle starting in April puts March 2026 in cycle 2025.
    """
    start_month = leave_type.cycle_start_month or 1
    if on_date.month < start_month:
        return on_date.year - 1
    return on_date.year


def build_rule_summary(leave_type: LeaveType) -> dict[str, Any]:
    """Condensed leave type configuration returned alongside balances."""
    return {
        "name": leave_type.name,
        "paid_type": leave_type.paid_type,
        "credit_frequency": leave_type.credit_frequency,
        "credit_day_of_month": leave_type.credit_day_of_month,
        "number_of_leaves_to_credit": str(leave_type.number_of_leaves_to_credit),
        "cycle_start_month": leave_type.cycle_start_month,
        "cycle_end_month": leave_type.cycle_end_month,
        "is_encashment_allowed": leave_type.is_encashment_allowed,
        "max_leaves_per_year": None if leave_type.max_leaves_per_year is None else str(leave_type.max_leaves_per_year),
        "max_leaves_per_month": (
            None if leave_type.max_leaves_per_month is None else str(leave_type.max_leaves_per_month)
        ),
        "max_leaves_to_carry_forward": leave_type.max_leaves_to_carry_forward,
        "lapse_balance_before_next_cycle": leave_type.lapse_balance_before_next_cycle,
    }


async def get_leave_type(
    session: AsyncSession,
    leave_type_id: uuid.UUID,
    company_id: uuid.UUID | None = None,
) -> LeaveType:
    """Load a non-deleted leave type, optionally scoped to a company. Raises NotFoundError."""
    filters = [
        col(LeaveType.id) == leave_type_id,
        col(LeaveType.deleted_at).is_(None),
    ]
    if company_id is not None:
        filters.append(col(LeaveType.company_id) == company_id)

    result = await session.execute(select(LeaveType).where(*filters))
    leave_type = result.scalar_one_or_none()
    if leave_type is None:
        raise NotFoundError("Leave type not found")
    return leave_type
