# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, Field

from leave_ledger.models.enums import CreditFrequency


class CreditRunRequest(BaseModel):
    """Request body for a manual credit cycle run."""

    frequency: CreditFrequency
    day_of_month: int | None = Field(default=None, ge=1, le=31)


class CreditRunResponse(BaseModel):
    """Summary returned after a credit cycle run."""

    frequency: CreditFrequency
    day_of_month: int | None
    run_date: date
    tenants_processed: int
    transactions_created: int
    skipped: int
    errors: int


class CycleCloseResponse(BaseModel):
    """Summary returned after closing a leave type's cycle."""

    leave_type_id: uuid.UUID
    closing_cycle_year: int
    scopes_processed: int
    carried_forward: int
    lapsed: int
    skipped: int
    errors: int
