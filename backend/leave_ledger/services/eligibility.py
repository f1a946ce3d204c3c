"""Eligibility rules deciding whether an employee may receive a leave type's credit."""

from __future__ import annotations

from typing import TYPE_CHECKING

from leave_ledger.models.enums import EmployeeStatus, Gender, JoiningRestriction

if TYPE_CHECKING:
    from leave_ledger.models.leave_type import LeaveType
    from leave_ledger.services.employee import EmployeeInfo


def _allowed_statuses(leave_type: LeaveType) -> set[str]:
    return {str(s).strip().lower() for s in leave_type.applicable_to_status or []}


def is_employee_eligible(employee: EmployeeInfo, leave_type: LeaveType) -> bool:
    """Return True when every eligibility filter on the leave type admits the employee.

    Of the joining-period restrictions only ``exclude_probation_period`` is
    evaluated; the other variants merely require a joining date on record.
    """
    if employee.status.value not in _allowed_statuses(leave_type):
        return False

    if leave_type.applicable_to_gender != Gender.ALL and employee.gender.value != leave_type.applicable_to_gender:
        return False

    restriction = leave_type.restrict_after_joining_period
    if restriction and restriction != JoiningRestriction.NO_RESTRICTION:
        if employee.date_of_joining is None:
            return False
        if restriction == JoiningRestriction.EXCLUDE_PROBATION_PERIOD and employee.status == EmployeeStatus.PROBATION:
            return False

    return True
