# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class PolicyMappingResponse(BaseModel):
    """A leave type's membership in a leave policy."""

    id: uuid.UUID
    policy_id: uuid.UUID
    leave_type_id: uuid.UUID
    display_order: int
    is_active: bool
    deleted_at: datetime | None
    created_at: datetime
    updated_at: datetime


class PolicyMappingListResponse(BaseModel):
    """Mappings of a policy, including deactivated and deleted ones when requested."""

    items: list[PolicyMappingResponse]
    total: int
