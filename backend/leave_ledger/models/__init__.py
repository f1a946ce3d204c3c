from sqlmodel import SQLModel

from leave_ledger.models.audit import AuditLog
from leave_ledger.models.balance import EmployeeLeaveBalance
from leave_ledger.models.base import SoftDeleteMixin, TimestampMixin, UUIDBase
from leave_ledger.models.enums import (
    AuditAction,
    AuditEntityType,
    CarryForwardLimit,
    CreditFrequency,
    EmployeeStatus,
    Gender,
    JoiningRestriction,
    LeavePaidType,
    ReferenceType,
    TransactionType,
)
from leave_ledger.models.leave_type import LeaveType
from leave_ledger.models.ledger import LeaveLedgerEntry, LedgerScopeHead
from leave_ledger.models.policy import LeavePolicy, LeavePolicyMapping

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "CarryForwardLimit",
    "CreditFrequency",
    "EmployeeLeaveBalance",
    "EmployeeStatus",
    "Gender",
    "JoiningRestriction",
    "LeaveLedgerEntry",
    "LeavePaidType",
    "LeavePolicy",
    "LeavePolicyMapping",
    "LeaveType",
    "LedgerScopeHead",
    "ReferenceType",
    "SQLModel",
    "SoftDeleteMixin",
    "TimestampMixin",
    "TransactionType",
    "UUIDBase",
]
