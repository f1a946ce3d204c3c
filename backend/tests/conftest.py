from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from leave_ledger.db import get_session, get_session_factory
from leave_ledger.main import app
from leave_ledger.models import LeavePolicy, LeavePolicyMapping, LeaveType, SQLModel
from leave_ledger.models.enums import EmployeeStatus, Gender
from leave_ledger.services.company import CompanyInfo, InMemoryCompanyService, get_company_service, set_company_service
from leave_ledger.services.employee import (
    EmployeeInfo,
    InMemoryEmployeeService,
    get_employee_service,
    set_employee_service,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Per-test SQLite database file, so independent sessions really commit."""
    _engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", poolclass=NullPool)
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def employee_service() -> Iterator[InMemoryEmployeeService]:
    """Fresh in-memory Employee Service for every test."""
    previous = get_employee_service()
    service = InMemoryEmployeeService()
    set_employee_service(service)
    yield service
    set_employee_service(previous)


@pytest.fixture(autouse=True)
def company_service() -> Iterator[InMemoryCompanyService]:
    """Fresh in-memory Company Service for every test."""
    previous = get_company_service()
    service = InMemoryCompanyService()
    set_company_service(service)
    yield service
    set_company_service(previous)


@pytest.fixture
async def async_client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database dependencies pointed at the test database."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@dataclass
class LeaveSetup:
    """A tenant with one policy, one monthly leave type and one active employee."""

    company_id: uuid.UUID
    policy_id: uuid.UUID
    leave_type_id: uuid.UUID
    mapping_id: uuid.UUID
    employee_id: uuid.UUID


@pytest.fixture
def add_leave_type(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[tuple[LeaveType, LeavePolicyMapping]]]:
    """Create a leave type and map it into a policy."""

    async def _add(
        company_id: uuid.UUID,
        policy_id: uuid.UUID,
        *,
        code: str = "CL",
        display_order: int = 1,
        **overrides: Any,
    ) -> tuple[LeaveType, LeavePolicyMapping]:
        fields: dict[str, Any] = {
            "company_id": company_id,
            "code": code,
            "name": f"{code} leave",
            "credit_frequency": "monthly",
            "number_of_leaves_to_credit": Decimal("1"),
            "applicable_to_status": ["active", "probation", "intern"],
        }
        fields.update(overrides)
        async with session_factory() as session:
            leave_type = LeaveType(**fields)
            session.add(leave_type)
            await session.flush()
            mapping = LeavePolicyMapping(
                policy_id=policy_id,
                leave_type_id=leave_type.id,
                display_order=display_order,
            )
            session.add(mapping)
            await session.commit()
        return leave_type, mapping

    return _add


@pytest.fixture
def add_employee(
    employee_service: InMemoryEmployeeService,
) -> Callable[..., EmployeeInfo]:
    """Seed an employee into the in-memory Employee Service."""

    def _add(company_id: uuid.UUID, policy_id: uuid.UUID | None, **overrides: Any) -> EmployeeInfo:
        fields: dict[str, Any] = {
            "id": uuid.uuid4(),
            "company_id": company_id,
            "employee_code": f"E{uuid.uuid4().hex[:6]}",
            "status": EmployeeStatus.ACTIVE,
            "gender": Gender.FEMALE,
            "date_of_joining": date(2024, 1, 15),
            "leave_policy_id": policy_id,
        }
        fields.update(overrides)
        employee = EmployeeInfo(**fields)
        employee_service.seed(employee)
        return employee

    return _add


@pytest.fixture
async def leave_setup(
    session_factory: async_sessionmaker[AsyncSession],
    company_service: InMemoryCompanyService,
    add_leave_type: Callable[..., Awaitable[tuple[LeaveType, LeavePolicyMapping]]],
    add_employee: Callable[..., EmployeeInfo],
) -> LeaveSetup:
    company_id = uuid.uuid4()
    company_service.seed(CompanyInfo(id=company_id, name="Acme"))

    async with session_factory() as session:
        policy = LeavePolicy(company_id=company_id, name="Standard")
        session.add(policy)
        await session.commit()

    leave_type, mapping = await add_leave_type(company_id, policy.id)
    employee = add_employee(company_id, policy.id)
    return LeaveSetup(
        company_id=company_id,
        policy_id=policy.id,
        leave_type_id=leave_type.id,
        mapping_id=mapping.id,
        employee_id=employee.id,
    )
