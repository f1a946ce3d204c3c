from __future__ import annotations

import enum


class EmployeeStatus(enum.StrEnum):
    """Employment status as reported by the Employee Service."""

    ACTIVE = "active"
    PROBATION = "probation"
    INTERN = "intern"
    SEPARATED = "separated"
    ABSCONDED = "absconded"
    TERMINATED = "terminated"
    SUSPENDED = "suspended"


class Gender(enum.StrEnum):
    """Gender values used by leave type eligibility filters."""

    MALE = "male"
    FEMALE = "female"
    TRANSGENDER = "transgender"
    ALL = "all"


class LeavePaidType(enum.StrEnum):
    """Whether a leave type is paid."""

    PAID = "paid"
    UNPAID = "unpaid"


class CreditFrequency(enum.StrEnum):
    """How often a leave type's entitlement is disbursed."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    HALF_YEARLY = "half_yearly"
    YEARLY = "yearly"
    NEXT_YEAR = "next_year"
    MANUAL = "manual"


# Frequencies the credit scheduler can be triggered with.
SCHEDULED_FREQUENCIES = (
    CreditFrequency.MONTHLY,
    CreditFrequency.QUARTERLY,
    CreditFrequency.HALF_YEARLY,
    CreditFrequency.YEARLY,
)


class JoiningRestriction(enum.StrEnum):
    """Restriction on crediting relative to the employee's joining date."""

    NO_RESTRICTION = "no_restriction"
    EXCLUDE_JOINING_MONTH = "exclude_joining_month"
    EXCLUDE_FIRST_3_MONTHS = "exclude_first_3_months"
    EXCLUDE_PROBATION_PERIOD = "exclude_probation_period"


class CarryForwardLimit(enum.StrEnum):
    """How much of a closing cycle's balance moves into the next cycle."""

    ZERO = "zero"
    ALL = "all"
    SPECIFIC = "specific"


class TransactionType(enum.StrEnum):
    """Type of ledger entry affecting balance."""

    CREDIT = "credit"
    DEBIT = "debit"
    CARRY_FORWARD = "carry_forward"
    ADJUSTMENT_CREDIT = "adjustment_credit"
    ADJUSTMENT_DEBIT = "adjustment_debit"
    ENCASHMENT = "encashment"
    LAPSE = "lapse"
    REVERSAL = "reversal"
    PENALTY = "penalty"


CREDIT_TYPES = frozenset(
    {
        TransactionType.CREDIT,
        TransactionType.ADJUSTMENT_CREDIT,
        TransactionType.CARRY_FORWARD,
        TransactionType.REVERSAL,
    }
)
DEBIT_TYPES = frozenset(
    {
        TransactionType.DEBIT,
        TransactionType.ADJUSTMENT_DEBIT,
        TransactionType.ENCASHMENT,
        TransactionType.LAPSE,
        TransactionType.PENALTY,
    }
)
REVERSIBLE_TYPES = frozenset(
    {
        TransactionType.DEBIT,
        TransactionType.ADJUSTMENT_DEBIT,
        TransactionType.PENALTY,
    }
)


class ReferenceType(enum.StrEnum):
    """Origin of a ledger entry."""

    SYSTEM_CREDIT = "system_credit"
    AUTO_CREDIT = "auto_credit"
    LEAVE_REQUEST = "leave_request"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    CARRY_FORWARD_PROCESS = "carry_forward_process"
    ENCASHMENT_PROCESS = "encashment_process"
    YEAR_END_LAPSE = "year_end_lapse"
    PENALTY_DEDUCTION = "penalty_deduction"
    LEAVE_CANCELLATION = "leave_cancellation"
    POLICY_ASSIGNMENT = "policy_assignment"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    LEDGER_ENTRY = "LEDGER_ENTRY"
    POLICY_MAPPING = "POLICY_MAPPING"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RESTORE = "RESTORE"
    REVERSE = "REVERSE"
