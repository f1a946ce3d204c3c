# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from leave_ledger.models.enums import ReferenceType, TransactionType

# ---------------------------------------------------------------------------
# Ledger entry response schemas
# ---------------------------------------------------------------------------


class LedgerEntryResponse(BaseModel):
    """A single ledger entry."""

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_cycle_year: int
    sequence: int
    transaction_type: TransactionType
    amount: Decimal
    balance_after_transaction: Decimal
    transaction_date: date
    reference_type: ReferenceType | None
    reference_id: str | None
    remarks: str | None
    created_by: uuid.UUID | None
    reverses_transaction_id: uuid.UUID | None
    created_at: datetime


class LedgerListResponse(BaseModel):
    """Paginated ledger entries."""

    items: list[LedgerEntryResponse]
    total: int


class LedgerWriteResponse(BaseModel):
    """Outcome of a credit, debit or reversal."""

    ledger_entry: LedgerEntryResponse
    previous_balance: Decimal
    new_balance: Decimal


# ---------------------------------------------------------------------------
# Write request schemas
# ---------------------------------------------------------------------------


class LedgerTransactionRequest(BaseModel):
    """Request body for a credit or debit.

    ``amount`` is a magnitude; the sign is derived from the transaction type.
    ``leave_cycle_year`` defaults to the cycle containing ``transaction_date``.
    """

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    amount: Decimal = Field(ge=0, max_digits=7, decimal_places=2)
    leave_cycle_year: int | None = Field(default=None, ge=2000, le=2100)
    transaction_type: TransactionType | None = None
    reference_type: ReferenceType | None = None
    reference_id: str | None = Field(default=None, max_length=255)
    remarks: str | None = Field(default=None, max_length=1000)
    transaction_date: date | None = None


class ReversalRequest(BaseModel):
    """Optional body for reversing a debit-class entry."""

    remarks: str | None = Field(default=None, max_length=1000)
