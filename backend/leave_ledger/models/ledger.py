# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlalchemy import event
from sqlmodel import Field, SQLModel

from leave_ledger.models.base import UUIDBase, now_utc


class LeaveLedgerEntry(UUIDBase, table=True):
    """Append-only ledger entry that records every balance-affecting event.

    ``sequence`` orders entries within one (employee, leave type, cycle year)
    scope and is allocated from :class:`LedgerScopeHead` at append time.
    """

    __tablename__ = "leave_ledger_entry"
    __table_args__ = (
        sa.Index("ix_ledger_employee_leave_year", "employee_id", "leave_type_id", "leave_cycle_year"),
        sa.Index("ix_ledger_employee_transaction_date", "employee_id", "transaction_date"),
        sa.Index("ix_ledger_reference", "reference_type", "reference_id"),
        sa.UniqueConstraint(
            "employee_id",
            "leave_type_id",
            "leave_cycle_year",
            "sequence",
            name="uq_ledger_scope_sequence",
        ),
        sa.UniqueConstraint("reverses_transaction_id", name="uq_ledger_reverses_transaction"),
    )

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id"), nullable=False, index=True),
    )
    leave_cycle_year: int
    sequence: int
    transaction_type: str = Field(max_length=30, index=True)
    amount: Decimal = Field(max_digits=7, decimal_places=2)
    balance_after_transaction: Decimal = Field(default=Decimal("0"), max_digits=9, decimal_places=2)
    transaction_date: date = Field(index=True)
    reference_type: str | None = Field(default=None, max_length=50)
    reference_id: str | None = Field(default=None, max_length=255)
    remarks: str | None = Field(default=None, sa_type=sa.Text)
    created_by: uuid.UUID | None = None
    reverses_transaction_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_ledger_entry.id"), nullable=True),
    )
    created_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )


class LedgerScopeHead(SQLModel, table=True):
    """Per-scope write head: the lock target and sequence allocator for ledger appends."""

    __tablename__ = "leave_ledger_scope"
    __table_args__ = (sa.PrimaryKeyConstraint("employee_id", "leave_type_id", "leave_cycle_year"),)

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id"), nullable=False),
    )
    leave_cycle_year: int
    last_sequence: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    last_entry_id: uuid.UUID | None = None
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )


class ImmutableLedgerError(RuntimeError):
    """Raised when code attempts to update or delete a ledger entry."""


def _reject_mutation(_mapper: Any, _connection: Any, target: LeaveLedgerEntry) -> None:
    msg = f"Ledger entry {target.id} is immutable"
    raise ImmutableLedgerError(msg)


event.listen(LeaveLedgerEntry, "before_update", _reject_mutation)
event.listen(LeaveLedgerEntry, "before_delete", _reject_mutation)
