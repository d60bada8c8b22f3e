"""
Typed read helpers shared by the fleet services.

Each supported filter combination has its own function with explicit
parameters; no caller builds predicates dynamically.
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Tuple, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Alert, AlertType, Chassis, Engine, Inspection, MountingHistory, OperationalState, Part, Planning, UsageRecord
from models.enums import EquipmentKind

T = TypeVar("T")


class AlertTarget(str, Enum):
    CHASSIS = "chassis"
    ENGINE = "engine"
    PART = "part"


_ALERT_TARGET_COLUMNS = {
    AlertTarget.CHASSIS: Alert.chassis_id,
    AlertTarget.ENGINE: Alert.engine_id,
    AlertTarget.PART: Alert.part_id,
}

_UNIT_MODELS = {
    EquipmentKind.CHASSIS: Chassis,
    EquipmentKind.ENGINE: Engine,
}


def unit_model(kind: EquipmentKind):
    return _UNIT_MODELS[EquipmentKind(kind)]


async def get_for_update(db: AsyncSession, model: Type[T], entity_id: int) -> Optional[T]:
    """Row-locking read that always refreshes the identity-map copy."""
    stmt = (
        select(model)
        .where(model.id == entity_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_fresh(db: AsyncSession, model: Type[T], entity_id: int) -> Optional[T]:
    stmt = select(model).where(model.id == entity_id).execution_options(populate_existing=True)
    return (await db.execute(stmt)).scalar_one_or_none()


async def host_chassis_id(db: AsyncSession, engine_id: int) -> Optional[int]:
    """Reverse lookup of the coupling: which chassis currently carries this engine."""
    stmt = select(Chassis.id).where(Chassis.engine_id == engine_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def open_mounting(db: AsyncSession, chassis_id: int, engine_id: int) -> Optional[MountingHistory]:
    stmt = (
        select(MountingHistory)
        .where(
            MountingHistory.chassis_id == chassis_id,
            MountingHistory.engine_id == engine_id,
            MountingHistory.ended_at.is_(None),
        )
        .order_by(MountingHistory.started_at.desc())
        .limit(1)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def open_mounting_of_engine(db: AsyncSession, engine_id: int) -> Optional[MountingHistory]:
    stmt = select(MountingHistory).where(
        MountingHistory.engine_id == engine_id,
        MountingHistory.ended_at.is_(None),
    )
    return (await db.execute(stmt)).scalars().first()


async def open_mounting_of_chassis(db: AsyncSession, chassis_id: int) -> Optional[MountingHistory]:
    stmt = select(MountingHistory).where(
        MountingHistory.chassis_id == chassis_id,
        MountingHistory.ended_at.is_(None),
    )
    return (await db.execute(stmt)).scalars().first()


async def latest_coupling_end(db: AsyncSession, chassis_id: int, engine_id: int) -> Optional[datetime]:
    """Most recent dismount time involving either unit, used to keep couplings time-ordered."""
    stmt = select(func.max(MountingHistory.ended_at)).where(
        MountingHistory.ended_at.is_not(None),
        (MountingHistory.chassis_id == chassis_id) | (MountingHistory.engine_id == engine_id),
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def open_alert_exists(
    db: AsyncSession,
    target: AlertTarget,
    target_id: int,
    alert_type: AlertType,
) -> bool:
    column = _ALERT_TARGET_COLUMNS[target]
    stmt = (
        select(Alert.id)
        .where(
            column == target_id,
            Alert.alert_type == alert_type,
            Alert.handled.is_(False),
        )
        .limit(1)
    )
    return (await db.execute(stmt)).scalar_one_or_none() is not None


async def open_planning_exists(db: AsyncSession, is_engine: bool, target_id: int) -> bool:
    stmt = (
        select(Planning.id)
        .where(
            Planning.is_engine.is_(is_engine),
            Planning.target_id == target_id,
            Planning.completed.is_(False),
        )
        .limit(1)
    )
    return (await db.execute(stmt)).scalar_one_or_none() is not None


async def usage_since(db: AsyncSession, chassis_id: int, since: date) -> Tuple[float, int]:
    """(sum of distance, number of records) logged for a chassis on or after ``since``."""
    stmt = select(
        func.coalesce(func.sum(UsageRecord.distance_km), 0.0),
        func.count(UsageRecord.id),
    ).where(
        UsageRecord.chassis_id == chassis_id,
        UsageRecord.session_date >= since,
    )
    total, count = (await db.execute(stmt)).one()
    return float(total or 0.0), int(count or 0)


async def active_chassis(db: AsyncSession) -> List:
    """Snapshot rows (id, serial_number, model, distance_km) of chassis not OUT_OF_SERVICE."""
    stmt = (
        select(Chassis.id, Chassis.serial_number, Chassis.model, Chassis.distance_km)
        .where(Chassis.state != OperationalState.OUT_OF_SERVICE)
        .order_by(Chassis.id)
    )
    return list((await db.execute(stmt)).all())


async def active_engines(db: AsyncSession) -> List:
    """Snapshot rows (id, serial_number, family, distance_km) of engines not OUT_OF_SERVICE."""
    stmt = (
        select(Engine.id, Engine.serial_number, Engine.family, Engine.distance_km)
        .where(Engine.state != OperationalState.OUT_OF_SERVICE)
        .order_by(Engine.id)
    )
    return list((await db.execute(stmt)).all())


async def low_stock_parts(db: AsyncSession) -> List:
    """Snapshot rows (id, name, quantity_in_stock, minimum_stock) at or below their minimum."""
    stmt = (
        select(Part.id, Part.name, Part.quantity_in_stock, Part.minimum_stock)
        .where(Part.quantity_in_stock <= Part.minimum_stock)
        .order_by(Part.id)
    )
    return list((await db.execute(stmt)).all())


async def latest_inspection_at(db: AsyncSession, chassis_id: int) -> Optional[datetime]:
    stmt = select(func.max(Inspection.inspected_at)).where(Inspection.chassis_id == chassis_id)
    return (await db.execute(stmt)).scalar_one_or_none()
