# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from leave_ledger.api.deps import AdminDep, AuthDep, validate_company_scope
from leave_ledger.db import SessionDep
from leave_ledger.schemas.policy import PolicyMappingListResponse, PolicyMappingResponse
from leave_ledger.services import policy as policy_service

router = APIRouter(
    prefix="/companies/{company_id}/leave-policies/{policy_id}/mappings",
    tags=["policies"],
    dependencies=[Depends(validate_company_scope)],
)


@router.get("", response_model=PolicyMappingListResponse)
async def list_policy_mappings(
    policy_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    include_deleted: bool = Query(default=False),
) -> PolicyMappingListResponse:
    """List the leave types mapped into a policy."""
    return await policy_service.list_policy_mappings(
        session, auth.company_id, policy_id, include_deleted=include_deleted
    )


@router.post("/{mapping_id}/deactivate", response_model=PolicyMappingResponse)
async def deactivate_mapping(
    policy_id: uuid.UUID,
    mapping_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> PolicyMappingResponse:
    """Stop crediting and listing a leave type under the policy."""
    return await policy_service.deactivate_mapping(session, auth, policy_id, mapping_id)


@router.delete("/{mapping_id}", response_model=PolicyMappingResponse)
async def soft_delete_mapping(
    policy_id: uuid.UUID,
    mapping_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> PolicyMappingResponse:
    """Soft delete a mapping; it can be restored later."""
    return await policy_service.soft_delete_mapping(session, auth, policy_id, mapping_id)


@router.post("/{mapping_id}/restore", response_model=PolicyMappingResponse)
async def restore_mapping(
    policy_id: uuid.UUID,
    mapping_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> PolicyMappingResponse:
    """Undo a soft delete and reactivate the mapping."""
    return await policy_service.restore_mapping(session, auth, policy_id, mapping_id)
