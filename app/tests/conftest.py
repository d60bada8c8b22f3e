"""
Pytest configuration and shared fixtures for the fleet test suite.

This module provides:
- Database fixtures (in-memory SQLite for fast tests, file-backed for concurrency)
- Service fixtures wired with a fixed clock, a recording notifier and private locks
- FastAPI async client fixture with the database dependency overridden
- Data factories for chassis, engines, parts and usage
"""

import itertools
from datetime import date, datetime
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  registers every table on Base.metadata
from core.config import MaintenanceConfig
from core.db import Base, get_db
from core.locks import EntityLocks
from core.notifications import RecordingNotifier
from main import app
from models import Chassis, Engine, OperationalState, Part, UsageRecord
from services.alert_service import AlertService
from services.coupling_service import CouplingService
from services.equipment_service import EquipmentService
from services.maintenance_service import MaintenanceService
from services.planning_service import PlanningService
from services.stock_service import StockService


# Test Database Configuration
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FIXED_NOW = datetime(2026, 3, 15, 10, 0, 0)

_serials = itertools.count(1)


@pytest.fixture
async def async_engine():
    """Create async engine for testing with in-memory SQLite."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def file_session_factory(tmp_path):
    """
    Session factory over a file-backed SQLite database.

    Every session gets its own connection, which the in-memory StaticPool
    setup cannot offer; used by the concurrency tests.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'fleet.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


# Collaborators
@pytest.fixture
def config() -> MaintenanceConfig:
    return MaintenanceConfig(
        chassis_interval=6000,
        engine_interval=3000,
        alert_window=200,
        schedule_window=800,
        engine_default_horizon_days=7,
        no_data_default_horizon_days=14,
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock(fixed_now):
    return lambda: fixed_now


@pytest.fixture
def locks() -> EntityLocks:
    return EntityLocks()


@pytest.fixture
def service_kwargs(config, notifier, clock, locks):
    return dict(config=config, notifier=notifier, clock=clock, locks=locks, max_attempts=3, base_delay=0)


@pytest.fixture
def coupling_service(async_db_session, service_kwargs) -> CouplingService:
    return CouplingService(async_db_session, **service_kwargs)


@pytest.fixture
def equipment_service(async_db_session, service_kwargs) -> EquipmentService:
    return EquipmentService(async_db_session, **service_kwargs)


@pytest.fixture
def alert_service(async_db_session, service_kwargs) -> AlertService:
    return AlertService(async_db_session, **service_kwargs)


@pytest.fixture
def planning_service(async_db_session, service_kwargs) -> PlanningService:
    return PlanningService(async_db_session, **service_kwargs)


@pytest.fixture
def stock_service(async_db_session, service_kwargs) -> StockService:
    return StockService(async_db_session, **service_kwargs)


@pytest.fixture
def maintenance_service(async_db_session, service_kwargs) -> MaintenanceService:
    return MaintenanceService(async_db_session, **service_kwargs)


@pytest.fixture
async def async_client(async_db_session) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client with database dependency override."""

    async def override_get_db():
        yield async_db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# Test Data Factories
@pytest.fixture
def make_chassis(async_db_session):
    async def factory(distance_km: float = 0.0, state: OperationalState = OperationalState.AVAILABLE, **kwargs) -> Chassis:
        chassis = Chassis(
            serial_number=kwargs.pop("serial_number", f"CH-{next(_serials)}"),
            model=kwargs.pop("model", "YZF-R 125"),
            distance_km=distance_km,
            state=state,
            **kwargs,
        )
        async_db_session.add(chassis)
        await async_db_session.commit()
        return chassis

    return factory


@pytest.fixture
def make_engine(async_db_session):
    async def factory(distance_km: float = 0.0, state: OperationalState = OperationalState.AVAILABLE, **kwargs) -> Engine:
        engine = Engine(
            serial_number=kwargs.pop("serial_number", f"EN-{next(_serials)}"),
            family=kwargs.pop("family", "YZF-R"),
            displacement_cc=125,
            distance_km=distance_km,
            state=state,
            **kwargs,
        )
        async_db_session.add(engine)
        await async_db_session.commit()
        return engine

    return factory


@pytest.fixture
def make_part(async_db_session):
    async def factory(quantity: int = 10, minimum: int = 2, unit_price: float = 10.0, **kwargs) -> Part:
        n = next(_serials)
        part = Part(
            reference=kwargs.pop("reference", f"REF-{n}"),
            name=kwargs.pop("name", f"Part {n}"),
            unit_price=unit_price,
            quantity_in_stock=quantity,
            minimum_stock=minimum,
        )
        async_db_session.add(part)
        await async_db_session.commit()
        return part

    return factory


@pytest.fixture
def add_usage(async_db_session):
    """Inserts a raw usage record without touching unit distances."""
    async def factory(chassis_id: int, session_date: date, distance_km: float) -> UsageRecord:
        record = UsageRecord(chassis_id=chassis_id, session_date=session_date, laps=0, distance_km=distance_km)
        async_db_session.add(record)
        await async_db_session.commit()
        return record

    return factory
