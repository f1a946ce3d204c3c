"""Audit trail for ledger appends and policy mapping changes."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from leave_ledger.models.audit import AuditLog
from leave_ledger.models.enums import AuditEntityType

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

    from leave_ledger.models.enums import AuditAction
    from leave_ledger.models.ledger import LeaveLedgerEntry

# Recorded as the actor of scheduler and cycle close writes.
SYSTEM_ACTOR = uuid.UUID(int=0)


def _json_safe(value: Any) -> Any:
    if isinstance(value, uuid.UUID | Decimal):
        return str(value)
    if isinstance(value, datetime | date):
        return value.isoformat()
    return value


def model_to_audit_dict(model: SQLModel) -> dict[str, Any]:
    """Snapshot a row as JSON-safe values; amounts keep their exact decimal text."""
    return {key: _json_safe(value) for key, value in model.model_dump().items()}


async def write_audit_log(
    session: AsyncSession,
    *,
    company_id: uuid.UUID,
    actor_id: uuid.UUID | None,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: AuditAction,
    before_json: dict[str, Any] | None = None,
    after_json: dict[str, Any] | None = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction; it commits or rolls back with the change."""
    entry = AuditLog(
        company_id=company_id,
        actor_id=actor_id or SYSTEM_ACTOR,
        entity_type=entity_type.value,
        entity_id=entity_id,
        action=action.value,
        before_json=before_json,
        after_json=after_json,
    )
    session.add(entry)
    return entry


async def audit_ledger_entry(
    session: AsyncSession,
    entry: LeaveLedgerEntry,
    *,
    actor_id: uuid.UUID | None,
    action: AuditAction,
) -> AuditLog:
    """Record an appended ledger entry. Ledger rows are never updated, so there is no before image."""
    return await write_audit_log(
        session,
        company_id=entry.company_id,
        actor_id=actor_id,
        entity_type=AuditEntityType.LEDGER_ENTRY,
        entity_id=entry.id,
        action=action,
        after_json=model_to_audit_dict(entry),
    )
