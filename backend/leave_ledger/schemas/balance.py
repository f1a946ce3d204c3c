# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class LeaveBalanceItem(BaseModel):
    """Current balance of one leave type in an employee's policy."""

    leave_type_id: uuid.UUID
    code: str
    leave_cycle_year: int
    available_balance: Decimal
    rule_summary: dict[str, Any]


class LeaveBalanceListResponse(BaseModel):
    """All leave type balances for an employee."""

    employee_id: uuid.UUID
    items: list[LeaveBalanceItem]
    total: int


class LeaveBalanceBreakdownResponse(BaseModel):
    """Totals replayed from every ledger entry of one scope."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_cycle_year: int
    total_credited: Decimal
    total_debited: Decimal
    total_carried_forward: Decimal
    total_carried_out: Decimal
    total_encashed: Decimal
    total_lapsed: Decimal
    total_reversed: Decimal
    current_balance: Decimal
    transaction_count: int


class SavedBalanceResponse(BaseModel):
    """One monthly balance cache row."""

    leave_type_id: uuid.UUID
    year: int
    month: int
    opening_balance: Decimal
    total_credited: Decimal
    total_debited: Decimal
    carried_forward: Decimal
    carried_out: Decimal
    encashed: Decimal
    lapsed: Decimal
    total_reversed: Decimal
    available_balance: Decimal
    last_transaction_id: uuid.UUID | None
    updated_at: datetime


class SavedBalanceListResponse(BaseModel):
    items: list[SavedBalanceResponse]
    total: int


class RebuildBalanceResponse(BaseModel):
    """Outcome of replaying the ledger into the balance cache."""

    employee_id: uuid.UUID
    rows_deleted: int
    rows_written: int
    entries_replayed: int
