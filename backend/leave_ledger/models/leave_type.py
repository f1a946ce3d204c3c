# ruff: noqa: TC003
from __future__ import annotations

import uuid
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import SoftDeleteMixin, TimestampMixin, UUIDBase
from leave_ledger.models.enums import (
    CarryForwardLimit,
    CreditFrequency,
    EmployeeStatus,
    Gender,
    JoiningRestriction,
    LeavePaidType,
)


def _default_statuses() -> list[str]:
    return [EmployeeStatus.ACTIVE.value]


class LeaveType(UUIDBase, TimestampMixin, SoftDeleteMixin, table=True):
    """Per-tenant leave type rules: credit schedule, amounts, eligibility and carry forward."""

    __tablename__ = "leave_type"
    __table_args__ = (
        sa.UniqueConstraint("company_id", "code", name="uq_leave_type_company_code"),
        sa.Index("ix_leave_type_company_active", "company_id", "is_active"),
    )

    company_id: uuid.UUID = Field(index=True)
    code: str = Field(max_length=20)
    name: str = Field(max_length=100)

    # Cycle
    cycle_start_month: int = Field(default=1, ge=1, le=12)
    cycle_end_month: int = Field(default=12, ge=1, le=12)
    paid_type: str = Field(default=LeavePaidType.PAID, max_length=20)
    is_encashment_allowed: bool = False

    # Eligibility
    applicable_to_status: list[str] = Field(default_factory=_default_statuses, sa_type=sa.JSON)
    applicable_to_gender: str = Field(default=Gender.ALL, max_length=20)
    restrict_after_joining_period: str = Field(default=JoiningRestriction.NO_RESTRICTION, max_length=50)

    # Credit rule
    credit_frequency: str = Field(default=CreditFrequency.YEARLY, max_length=20, index=True)
    credit_day_of_month: int | None = Field(default=None, ge=1, le=31)
    number_of_leaves_to_credit: Decimal = Field(default=Decimal("0"), max_digits=7, decimal_places=2)
    active_leaves_to_credit: Decimal | None = Field(default=None, max_digits=7, decimal_places=2)
    probation_leaves_to_credit: Decimal | None = Field(default=None, max_digits=7, decimal_places=2)
    intern_leaves_to_credit: Decimal | None = Field(default=None, max_digits=7, decimal_places=2)
    contractor_leaves_to_credit: Decimal | None = Field(default=None, max_digits=7, decimal_places=2)
    separated_leaves_to_credit: Decimal | None = Field(default=None, max_digits=7, decimal_places=2)
    round_off_credited_leaves: bool = False

    # Limits
    max_leaves_per_year: Decimal | None = Field(default=None, max_digits=7, decimal_places=2)
    max_leaves_per_month: Decimal | None = Field(default=None, max_digits=7, decimal_places=2)

    # Carry forward / lapse
    lapse_balance_before_next_cycle: bool = True
    max_leaves_to_carry_forward: str = Field(default=CarryForwardLimit.ZERO, max_length=20)
    max_carry_forward_count: Decimal | None = Field(default=None, max_digits=7, decimal_places=2)

    is_active: bool = True
    created_by: uuid.UUID | None = None
