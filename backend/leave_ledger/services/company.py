# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class CompanyInfo(BaseModel):
    """Tenant metadata from the Company Service."""

    id: uuid.UUID
    name: str


@runtime_checkable
class CompanyService(Protocol):
    """Interface for the Company Service."""

    async def get_company(self, company_id: uuid.UUID) -> CompanyInfo | None:
        """Fetch company metadata. Returns None if not found."""
        ...

    async def list_companies(self) -> list[CompanyInfo]:
        """List every tenant the credit scheduler should visit."""
        ...


class InMemoryCompanyService:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._companies: dict[uuid.UUID, CompanyInfo] = {}

    def seed(self, company: CompanyInfo) -> None:
        """Seed a company for testing."""
        self._companies[company.id] = company

    async def get_company(self, company_id: uuid.UUID) -> CompanyInfo | None:
        """Fetch company metadata. Returns None if not found."""
        return self._companies.get(company_id)

    async def list_companies(self) -> list[CompanyInfo]:
        return list(self._companies.values())


_company_service: CompanyService = InMemoryCompanyService()


def get_company_service() -> CompanyService:
    """FastAPI dependency for the Company Service."""
    return _company_service


def set_company_service(service: CompanyService) -> None:
    """Override the service (for testing or production wiring)."""
    global _company_service
    _company_service = service
