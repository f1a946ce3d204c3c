from __future__ import annotations

import uuid
from datetime import date
from typing import Any

import pytest

from leave_ledger.models.enums import EmployeeStatus, Gender, JoiningRestriction
from leave_ledger.models.leave_type import LeaveType
from leave_ledger.services.eligibility import is_employee_eligible
from leave_ledger.services.employee import EmployeeInfo

COMPANY = uuid.uuid4()


def _employee(**fields: Any) -> EmployeeInfo:
    base: dict[str, Any] = {
        "id": uuid.uuid4(),
        "company_id": COMPANY,
        "employee_code": "E001",
        "gender": Gender.FEMALE,
        "date_of_joining": date(2024, 6, 1),
    }
    base.update(fields)
    return EmployeeInfo(**base)


def _leave_type(**fields: Any) -> LeaveType:
    base: dict[str, Any] = {
        "company_id": COMPANY,
        "code": "CL",
        "name": "Casual",
        "applicable_to_status": ["active", "probation"],
    }
    base.update(fields)
    return LeaveType(**base)


def test_matching_employee_eligible() -> None:
    assert is_employee_eligible(_employee(), _leave_type())


def test_status_not_in_list() -> None:
    assert not is_employee_eligible(_employee(status=EmployeeStatus.INTERN), _leave_type())


def test_status_list_is_case_insensitive() -> None:
    leave_type = _leave_type(applicable_to_status=[" Active "])
    assert is_employee_eligible(_employee(), leave_type)


@pytest.mark.parametrize(
    ("gender", "employee_gender", "expected"),
    [
        (Gender.ALL, Gender.MALE, True),
        (Gender.FEMALE, Gender.FEMALE, True),
        (Gender.FEMALE, Gender.MALE, False),
        (Gender.MALE, Gender.TRANSGENDER, False),
    ],
)
def test_gender_filter(gender: Gender, employee_gender: Gender, expected: bool) -> None:
    leave_type = _leave_type(applicable_to_gender=gender)
    assert is_employee_eligible(_employee(gender=employee_gender), leave_type) is expected


def test_probation_excluded_by_restriction() -> None:
    leave_type = _leave_type(restrict_after_joining_period=JoiningRestriction.EXCLUDE_PROBATION_PERIOD)
    assert not is_employee_eligible(_employee(status=EmployeeStatus.PROBATION), leave_type)
    assert is_employee_eligible(_employee(), leave_type)


def test_restriction_requires_joining_date() -> None:
    leave_type = _leave_type(restrict_after_joining_period=JoiningRestriction.EXCLUDE_JOINING_MONTH)
    assert not is_employee_eligible(_employee(date_of_joining=None), leave_type)
    assert is_employee_eligible(_employee(), leave_type)


def test_no_restriction_ignores_joining_date() -> None:
    assert is_employee_eligible(_employee(date_of_joining=None), _leave_type())
