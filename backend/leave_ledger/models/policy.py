# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import SoftDeleteMixin, TimestampMixin, UUIDBase, now_utc


class LeavePolicy(UUIDBase, TimestampMixin, SoftDeleteMixin, table=True):
    """Named bundle of leave types assigned to employees (e.g. Standard-FT)."""

    __tablename__ = "leave_policy"
    __table_args__ = (sa.UniqueConstraint("company_id", "name", name="uq_leave_policy_company_name"),)

    company_id: uuid.UUID = Field(index=True)
    name: str = Field(max_length=255)
    is_active: bool = True


class LeavePolicyMapping(UUIDBase, TimestampMixin, SoftDeleteMixin, table=True):
    """Links a leave type into a policy.

    Mappings are never removed: deactivation flips ``is_active`` and deletion
    stamps ``deleted_at``, so the history of what a policy granted survives.
    """

    __tablename__ = "leave_policy_mapping"
    __table_args__ = (sa.UniqueConstraint("policy_id", "leave_type_id", name="uq_policy_leave_type"),)

    policy_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_policy.id"), nullable=False, index=True),
    )
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id"), nullable=False, index=True),
    )
    display_order: int = 0
    is_active: bool = True
    updated_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )
