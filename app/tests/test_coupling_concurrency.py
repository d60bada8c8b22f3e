"""
Concurrency tests for engine exclusivity and open mounting records.

Each concurrent caller gets its own session (and so its own SQLite
connection) on a file-backed database; the callers share one lock registry
the way service instances in one process share ``entity_locks``.
"""

import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from core.locks import EntityLocks
from core.notifications import NullNotifier
from models import Chassis, Engine, MountingHistory
from services.coupling_service import CouplingService
from services.exceptions import (
    ChassisAlreadyHasEngineError,
    ConcurrentModificationError,
    EngineAlreadyMountedError,
    NoEngineMountedError,
)


async def seed(session_factory, chassis_count: int, engine_count: int):
    async with session_factory() as db:
        chassis = [Chassis(serial_number=f"C{i}", model="MT 125", distance_km=0.0) for i in range(chassis_count)]
        engines = [Engine(serial_number=f"E{i}", family="MT", distance_km=0.0) for i in range(engine_count)]
        db.add_all(chassis + engines)
        await db.commit()
        return [c.id for c in chassis], [e.id for e in engines]


async def attempt(session_factory, locks, config, operation, *args):
    async with session_factory() as db:
        service = CouplingService(db, config=config, notifier=NullNotifier(), locks=locks, max_attempts=5, base_delay=0.01)
        try:
            return await getattr(service, operation)(*args)
        except Exception as e:
            return e


async def open_rows(session_factory):
    async with session_factory() as db:
        by_engine = await db.execute(
            select(MountingHistory.engine_id, func.count())
            .where(MountingHistory.ended_at.is_(None))
            .group_by(MountingHistory.engine_id)
        )
        by_chassis = await db.execute(
            select(MountingHistory.chassis_id, func.count())
            .where(MountingHistory.ended_at.is_(None))
            .group_by(MountingHistory.chassis_id)
        )
        return dict(by_engine.all()), dict(by_chassis.all())


class TestConcurrentCoupling:

    async def test_same_engine_on_many_chassis_mounts_once(self, file_session_factory, config):
        chassis_ids, (engine_id,) = await seed(file_session_factory, 4, 1)
        locks = EntityLocks()

        results = await asyncio.gather(*[
            attempt(file_session_factory, locks, config, "mount", cid, engine_id, "tech")
            for cid in chassis_ids
        ])

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert all(isinstance(f, EngineAlreadyMountedError) for f in failures)

        by_engine, _ = await open_rows(file_session_factory)
        assert by_engine == {engine_id: 1}

        async with file_session_factory() as db:
            carriers = (await db.execute(select(Chassis.id).where(Chassis.engine_id == engine_id))).scalars().all()
        assert carriers == [successes[0].chassis_id]

    async def test_many_engines_on_one_chassis_mounts_once(self, file_session_factory, config):
        (chassis_id,), engine_ids = await seed(file_session_factory, 1, 4)
        locks = EntityLocks()

        results = await asyncio.gather(*[
            attempt(file_session_factory, locks, config, "mount", chassis_id, eid, "tech")
            for eid in engine_ids
        ])

        successes = [r for r in results if not isinstance(r, Exception)]
        assert len(successes) == 1
        assert all(
            isinstance(r, ChassisAlreadyHasEngineError) for r in results if isinstance(r, Exception)
        )
        _, by_chassis = await open_rows(file_session_factory)
        assert by_chassis == {chassis_id: 1}

    async def test_concurrent_dismounts_close_one_row(self, file_session_factory, config):
        (chassis_id,), (engine_id,) = await seed(file_session_factory, 1, 1)
        locks = EntityLocks()
        await attempt(file_session_factory, locks, config, "mount", chassis_id, engine_id, "tech")

        results = await asyncio.gather(*[
            attempt(file_session_factory, locks, config, "dismount", chassis_id, "tech")
            for _ in range(3)
        ])

        successes = [r for r in results if not isinstance(r, Exception)]
        assert len(successes) == 1
        assert all(isinstance(r, NoEngineMountedError) for r in results if isinstance(r, Exception))

        async with file_session_factory() as db:
            closed = (
                await db.execute(select(func.count()).select_from(MountingHistory).where(MountingHistory.ended_at.is_not(None)))
            ).scalar_one()
        assert closed == 1


class TestStoreGuards:
    """The schema rejects a second open coupling even when the service is bypassed"""

    async def test_second_open_history_for_engine_is_rejected(self, async_db_session, make_chassis, make_engine, fixed_now):
        first = await make_chassis()
        second = await make_chassis()
        engine = await make_engine()
        for chassis in (first, second):
            async_db_session.add(
                MountingHistory(
                    chassis_id=chassis.id,
                    engine_id=engine.id,
                    started_at=fixed_now,
                    chassis_start_km=0.0,
                    engine_start_km=0.0,
                    technician="tech",
                )
            )

        with pytest.raises(IntegrityError):
            await async_db_session.commit()
        await async_db_session.rollback()

    async def test_engine_referenced_by_two_chassis_is_rejected(self, async_db_session, make_chassis, make_engine):
        engine = await make_engine()
        await make_chassis(engine_id=engine.id)

        with pytest.raises(IntegrityError):
            await make_chassis(engine_id=engine.id)
        await async_db_session.rollback()


class TestRetryExhaustion:

    async def test_persistent_conflict_surfaces_as_concurrent_modification(
        self, coupling_service, make_chassis, make_engine, monkeypatch
    ):
        chassis = await make_chassis()
        engine = await make_engine()
        calls = []

        async def always_locked(*args, **kwargs):
            calls.append(args)
            raise OperationalError("UPDATE chassis", {}, Exception("database is locked"))

        monkeypatch.setattr(coupling_service, "_mount_once", always_locked)

        with pytest.raises(ConcurrentModificationError):
            await coupling_service.mount(chassis.id, engine.id, "tech")

        assert len(calls) == coupling_service.max_attempts
