# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import UUIDBase, now_utc


class EmployeeLeaveBalance(UUIDBase, table=True):
    """Monthly balance cache, upserted with every ledger write and rebuildable from the ledger.

    ``year`` is the leave cycle year of the scope; ``month`` is the calendar
    month of the transactions folded into the row.
    """

    __tablename__ = "employee_leave_balance"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "leave_type_id", "year", "month", name="uq_balance_employee_leave_month"),
        sa.Index("ix_balance_year_month", "year", "month"),
    )

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id"), nullable=False, index=True),
    )
    year: int
    month: int = Field(ge=1, le=12)
    available_balance: Decimal = Field(default=Decimal("0"), max_digits=9, decimal_places=2)
    opening_balance: Decimal = Field(default=Decimal("0"), max_digits=9, decimal_places=2)
    total_credited: Decimal = Field(default=Decimal("0"), max_digits=9, decimal_places=2)
    total_debited: Decimal = Field(default=Decimal("0"), max_digits=9, decimal_places=2)
    carried_forward: Decimal = Field(default=Decimal("0"), max_digits=9, decimal_places=2)
    carried_out: Decimal = Field(default=Decimal("0"), max_digits=9, decimal_places=2)
    encashed: Decimal = Field(default=Decimal("0"), max_digits=9, decimal_places=2)
    lapsed: Decimal = Field(default=Decimal("0"), max_digits=9, decimal_places=2)
    total_reversed: Decimal = Field(default=Decimal("0"), max_digits=9, decimal_places=2)
    last_transaction_id: uuid.UUID | None = None
    last_sequence: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )
