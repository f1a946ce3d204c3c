# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.exceptions import NotFoundError, ValidationError
from leave_ledger.models.base import now_utc
from leave_ledger.models.enums import AuditAction, AuditEntityType
from leave_ledger.models.leave_type import LeaveType
from leave_ledger.models.policy import LeavePolicy, LeavePolicyMapping
from leave_ledger.schemas.policy import PolicyMappingListResponse, PolicyMappingResponse
from leave_ledger.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.models.enums import CreditFrequency
    from leave_ledger.schemas.auth import AuthContext


def _build_mapping_response(mapping: LeavePolicyMapping) -> PolicyMappingResponse:
    return PolicyMappingResponse(
        id=mapping.id,
        policy_id=mapping.policy_id,
        leave_type_id=mapping.leave_type_id,
        display_order=mapping.display_order,
        is_active=mapping.is_active,
        deleted_at=mapping.deleted_at,
        created_at=mapping.created_at,
        updated_at=mapping.updated_at,
    )


async def get_policy(
    session: AsyncSession,
    company_id: uuid.UUID,
    policy_id: uuid.UUID,
) -> LeavePolicy:
    """Load a non-deleted policy belonging to the company. Raises NotFoundError."""
    result = await session.execute(
        select(LeavePolicy).where(
            col(LeavePolicy.id) == policy_id,
            col(LeavePolicy.company_id) == company_id,
            col(LeavePolicy.deleted_at).is_(None),
        )
    )
    policy = result.scalar_one_or_none()
    if policy is None:
        raise NotFoundError("Leave policy not found")
    return policy


async def list_policy_leave_types(
    session: AsyncSession,
    policy_id: uuid.UUID,
    *,
    frequency: CreditFrequency | None = None,
    day_of_month: int | None = None,
) -> list[LeaveType]:
    """Return the active leave types mapped into an active policy, in display order.

    Mappings, leave types and the policy itself are all filtered on both their
    ``is_active`` flag and their ``deleted_at`` timestamp.
    """
    filters = [
        col(LeavePolicyMapping.policy_id) == policy_id,
        col(LeavePolicyMapping.is_active).is_(True),
        col(LeavePolicyMapping.deleted_at).is_(None),
        col(LeavePolicy.is_active).is_(True),
        col(LeavePolicy.deleted_at).is_(None),
        col(LeaveType.is_active).is_(True),
        col(LeaveType.deleted_at).is_(None),
    ]
    if frequency is not None:
        filters.append(col(LeaveType.credit_frequency) == frequency.value)
    if day_of_month is not None:
        filters.append(col(LeaveType.credit_day_of_month) == day_of_month)

    result = await session.execute(
        select(LeaveType)
        .join(LeavePolicyMapping, col(LeavePolicyMapping.leave_type_id) == col(LeaveType.id))
        .join(LeavePolicy, col(LeavePolicy.id) == col(LeavePolicyMapping.policy_id))
        .where(*filters)
        .order_by(col(LeavePolicyMapping.display_order), col(LeaveType.code))
    )
    return list(result.scalars().all())


async def list_policy_mappings(
    session: AsyncSession,
    company_id: uuid.UUID,
    policy_id: uuid.UUID,
    *,
    include_deleted: bool = False,
) -> PolicyMappingListResponse:
    """List a policy's mappings; soft-deleted rows only when asked for."""
    await get_policy(session, company_id, policy_id)

    query = select(LeavePolicyMapping).where(col(LeavePolicyMapping.policy_id) == policy_id)
    if not include_deleted:
        query = query.where(col(LeavePolicyMapping.deleted_at).is_(None))

    result = await session.execute(query.order_by(col(LeavePolicyMapping.display_order)))
    mappings = list(result.scalars().all())
    return PolicyMappingListResponse(items=[_build_mapping_response(m) for m in mappings], total=len(mappings))


async def _get_mapping(
    session: AsyncSession,
    company_id: uuid.UUID,
    policy_id: uuid.UUID,
    mapping_id: uuid.UUID,
) -> LeavePolicyMapping:
    await get_policy(session, company_id, policy_id)
    result = await session.execute(
        select(LeavePolicyMapping).where(
            col(LeavePolicyMapping.id) == mapping_id,
            col(LeavePolicyMapping.policy_id) == policy_id,
        )
    )
    mapping = result.scalar_one_or_none()
    if mapping is None:
        raise NotFoundError("Policy mapping not found")
    return mapping


async def _save_mapping_change(
    session: AsyncSession,
    auth: AuthContext,
    mapping: LeavePolicyMapping,
    before: dict[str, object],
    action: AuditAction,
) -> PolicyMappingResponse:
    mapping.updated_at = now_utc()
    session.add(mapping)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.POLICY_MAPPING,
        entity_id=mapping.id,
        action=action,
        before_json=before,
        after_json=model_to_audit_dict(mapping),
    )

    await session.commit()
    await session.refresh(mapping)
    return _build_mapping_response(mapping)


async def deactivate_mapping(
    session: AsyncSession,
    auth: AuthContext,
    policy_id: uuid.UUID,
    mapping_id: uuid.UUID,
) -> PolicyMappingResponse:
    """Stop a leave type from being credited or listed under the policy, keeping the row."""
    mapping = await _get_mapping(session, auth.company_id, policy_id, mapping_id)
    if mapping.deleted_at is not None:
        raise ValidationError("Policy mapping is deleted; restore it first")
    before = model_to_audit_dict(mapping)
    mapping.is_active = False
    return await _save_mapping_change(session, auth, mapping, before, AuditAction.UPDATE)


async def soft_delete_mapping(
    session: AsyncSession,
    auth: AuthContext,
    policy_id: uuid.UUID,
    mapping_id: uuid.UUID,
) -> PolicyMappingResponse:
    """Stamp ``deleted_at`` on a mapping. The row and its history stay in place."""
    mapping = await _get_mapping(session, auth.company_id, policy_id, mapping_id)
    if mapping.deleted_at is not None:
        return _build_mapping_response(mapping)
    before = model_to_audit_dict(mapping)
    mapping.deleted_at = now_utc()
    return await _save_mapping_change(session, auth, mapping, before, AuditAction.DELETE)


async def restore_mapping(
    session: AsyncSession,
    auth: AuthContext,
    policy_id: uuid.UUID,
    mapping_id: uuid.UUID,
) -> PolicyMappingResponse:
    """Clear ``deleted_at`` and reactivate a mapping."""
    mapping = await _get_mapping(session, auth.company_id, policy_id, mapping_id)
    before = model_to_audit_dict(mapping)
    mapping.deleted_at = None
    mapping.is_active = True
    return await _save_mapping_change(session, auth, mapping, before, AuditAction.RESTORE)
