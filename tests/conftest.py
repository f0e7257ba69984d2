"""Pytest fixtures for Sitedoc tests."""

from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest
import pytest_asyncio
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from uuid_utils.compat import uuid7

from sitedoc.config.settings import ReportingConfig, Settings
from sitedoc.db.models import (
    Base,
    DailyDiary,
    DiaryLabourEntry,
    DiaryMaterialEntry,
    DiaryPlantEntry,
    Inspection,
    Lot,
    NonConformance,
    Organization,
    OrganizationMember,
    Project,
    ReportRequest,
)
from sitedoc.db.repositories.report import ReportRequestRepository
from sitedoc.reporting.factory import ReportingServices, create_reporting_services
from sitedoc.reporting.storage import InMemoryBlobStore
from sitedoc.reporting.types import ReportKind

# =============================================================================
# Structlog Configuration Fixture
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_structlog_after_test():
    """Reset structlog configuration after each test.

    This ensures tests that modify structlog global state
    don't affect other tests.
    """
    yield
    structlog.reset_defaults()
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings for tests: in-memory database, inline runner, in-memory store."""
    return Settings(
        API_SECRET_KEY=SecretStr("test-api-secret"),
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        ENVIRONMENT="test",
        DEBUG=True,
        log_level="DEBUG",
        reporting=ReportingConfig(runner="inline", storage_backend="memory"),
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite engine with the full schema, one per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Site Data
# =============================================================================


@dataclass
class SiteData:
    """Identifiers of the seeded organizations, users and records.

    Harbour Builders owns "Harbour Tower" (two diaries, three inspections,
    two NCRs, two lots) and the empty "Quiet Yard" project. Rival Constructions
    owns "Rival Site" and is the foreign organization in isolation tests.
    """

    org_id: UUID
    other_org_id: UUID
    owner_id: UUID
    admin_id: UUID
    manager_id: UUID
    viewer_id: UUID
    finance_id: UUID
    outsider_id: UUID
    project_id: UUID
    empty_project_id: UUID
    other_project_id: UUID
    lot_id: UUID
    draft_inspection_id: UUID
    passed_inspection_id: UUID
    other_inspection_id: UUID


@pytest_asyncio.fixture
async def site(session_factory) -> SiteData:
    """Seed two organizations with members, projects and site records."""
    data = SiteData(
        org_id=uuid7(),
        other_org_id=uuid7(),
        owner_id=uuid7(),
        admin_id=uuid7(),
        manager_id=uuid7(),
        viewer_id=uuid7(),
        finance_id=uuid7(),
        outsider_id=uuid7(),
        project_id=uuid7(),
        empty_project_id=uuid7(),
        other_project_id=uuid7(),
        lot_id=uuid7(),
        draft_inspection_id=uuid7(),
        passed_inspection_id=uuid7(),
        other_inspection_id=uuid7(),
    )
    org = Organization(id=data.org_id, name="Harbour Builders")
    other_org = Organization(id=data.other_org_id, name="Rival Constructions")

    async with session_factory() as session:
        session.add_all([org, other_org])
        await session.flush()

        session.add_all(
            [
                OrganizationMember(organization_id=org.id, user_id=data.owner_id, role="owner"),
                OrganizationMember(organization_id=org.id, user_id=data.admin_id, role="admin"),
                OrganizationMember(
                    organization_id=org.id, user_id=data.manager_id, role="project_manager"
                ),
                OrganizationMember(organization_id=org.id, user_id=data.viewer_id, role="viewer"),
                OrganizationMember(
                    organization_id=org.id, user_id=data.finance_id, role="finance_manager"
                ),
                OrganizationMember(
                    organization_id=other_org.id, user_id=data.outsider_id, role="owner"
                ),
                Project(
                    id=data.project_id,
                    organization_id=org.id,
                    name="Harbour Tower",
                    project_number="HT-001",
                ),
                Project(id=data.empty_project_id, organization_id=org.id, name="Quiet Yard"),
                Project(id=data.other_project_id, organization_id=other_org.id, name="Rival Site"),
            ]
        )
        await session.flush()

        second_lot = Lot(project_id=data.project_id, lot_number="L-002", description="Level 1")
        session.add_all(
            [
                Lot(id=data.lot_id, project_id=data.project_id, lot_number="L-001",
                    description="Footings"),
                second_lot,
            ]
        )

        first_diary = DailyDiary(
            project_id=data.project_id,
            diary_date=date(2026, 3, 2),
            weather="Fine",
            activities="Footing excavation and pour",
            status="submitted",
            trades_on_site=[
                {
                    "trade": "Concreter",
                    "company": "Acme Concrete",
                    "workers": 4,
                    "hourly_rate": 85,
                    "total_cost": 2720,
                }
            ],
        )
        second_diary = DailyDiary(
            project_id=data.project_id,
            diary_date=date(2026, 3, 3),
            weather="Showers",
            activities="Slab reinforcement",
            status="submitted",
            trades_on_site=[{"trade": "Steel fixer", "company": "Rebar Co", "workers": 3}],
        )
        session.add_all(
            [
                first_diary,
                second_diary,
                DailyDiary(
                    project_id=data.other_project_id,
                    diary_date=date(2026, 3, 2),
                    activities="Rival works",
                    trades_on_site=[],
                ),
            ]
        )
        await session.flush()

        session.add_all(
            [
                DiaryLabourEntry(
                    diary_id=first_diary.id,
                    worker_name="Sam Lee",
                    trade="Concreter",
                    hours=Decimal("8"),
                    hourly_rate=Decimal("85"),
                    total_cost=Decimal("680"),
                ),
                DiaryLabourEntry(
                    diary_id=second_diary.id,
                    worker_name="Ana Diaz",
                    trade="Steel fixer",
                    hours=Decimal("7.5"),
                    hourly_rate=Decimal("90"),
                    total_cost=Decimal("675"),
                ),
                DiaryPlantEntry(
                    diary_id=first_diary.id,
                    equipment="Excavator 20t",
                    hours=Decimal("6"),
                    hourly_rate=Decimal("150"),
                    fuel_cost=Decimal("120"),
                    total_cost=Decimal("1020"),
                ),
                DiaryMaterialEntry(
                    diary_id=second_diary.id,
                    material="Concrete 32MPa",
                    quantity=Decimal("12.5"),
                    unit="m3",
                    unit_cost=Decimal("240"),
                    total_cost=Decimal("3000"),
                ),
                Inspection(
                    id=data.passed_inspection_id,
                    project_id=data.project_id,
                    lot_id=data.lot_id,
                    template_name="Footing Pour",
                    status="completed",
                    result="pass",
                    inspection_date=date(2026, 3, 2),
                    inspector_name="Jo Park",
                    checklist_items=[{"item": "Reo cover", "result": "pass"}],
                ),
                Inspection(
                    project_id=data.project_id,
                    template_name="Slab Reinforcement",
                    status="completed",
                    result="fail",
                    inspection_date=date(2026, 3, 3),
                    inspector_name="Jo Park",
                    checklist_items=[{"item": "Bar spacing", "result": "fail"}],
                ),
                Inspection(
                    id=data.draft_inspection_id,
                    project_id=data.project_id,
                    lot_id=second_lot.id,
                    template_name="Formwork Check",
                    status="draft",
                    inspection_date=date(2026, 3, 4),
                    checklist_items=[
                        {"item": "Props plumb", "result": "pass"},
                        {"item": "Joints sealed", "result": "fail", "comment": "Gap at grid C"},
                        {"item": "Edge form", "result": "na"},
                    ],
                ),
                Inspection(
                    id=data.other_inspection_id,
                    project_id=data.other_project_id,
                    template_name="Rival Check",
                    status="draft",
                    inspection_date=date(2026, 3, 2),
                    checklist_items=[],
                ),
                NonConformance(
                    project_id=data.project_id,
                    ncr_number="NCR-001",
                    title="Honeycombing on footing F3",
                    severity="major",
                    status="open",
                    raised_on=date(2026, 3, 3),
                ),
                NonConformance(
                    project_id=data.project_id,
                    ncr_number="NCR-002",
                    title="Bar chair missing",
                    severity="minor",
                    status="closed",
                    raised_on=date(2026, 3, 1),
                    closed_on=date(2026, 3, 2),
                ),
            ]
        )
        await session.commit()

    return data


# =============================================================================
# Reporting Fixtures
# =============================================================================


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def add_report(session_factory, site):
    """Insert a report row directly, bypassing intake and the job submitter."""

    async def add(
        *,
        kind: ReportKind = ReportKind.PROJECT_SUMMARY,
        output_format: str = "pdf",
        requested_by: UUID | None = None,
        parameters: dict | None = None,
        status: str = "queued",
    ) -> ReportRequest:
        async with session_factory() as session:
            return await ReportRequestRepository(session).create(
                ReportRequest(
                    organization_id=site.org_id,
                    kind=kind.value,
                    format=output_format,
                    name=f"{kind.label} - Harbour Tower",
                    parameters=parameters or {"project_id": str(site.project_id)},
                    status=status,
                    requested_by=requested_by or site.owner_id,
                )
            )

    return add


@pytest.fixture
def reporting(test_settings, session_factory, blob_store) -> ReportingServices:
    """Reporting components with the inline runner and an in-memory store."""
    return create_reporting_services(
        test_settings, session_factory, blob_store=blob_store, runner="inline"
    )


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def test_app(test_settings: Settings, session_factory, reporting) -> FastAPI:
    """FastAPI application with state set directly.

    ASGITransport does not run the lifespan, so the session factory and
    reporting components are attached here.
    """
    from sitedoc.api.app import create_app

    app = create_app(settings=test_settings)
    app.state.session_factory = session_factory
    app.state.reporting = reporting
    return app


@pytest_asyncio.fixture
async def test_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated async HTTP client calling the application directly."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as client:
        yield client


@pytest_asyncio.fixture
async def authenticated_client(
    test_app: FastAPI,
    test_settings: Settings,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client carrying the test API key.

    Pass ``headers=as_user(user_id)`` per request to name the acting user.
    """
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
        headers={
            "Authorization": f"Bearer {test_settings.API_SECRET_KEY.get_secret_value()}",
        },
    ) as client:
        yield client


@pytest.fixture
def as_user() -> Callable[[UUID], dict[str, str]]:
    """Headers naming the acting user."""

    def headers(user_id: UUID) -> dict[str, str]:
        return {"X-User-ID": str(user_id)}

    return headers
