import logging
from datetime import date
from typing import List, Optional, Union

from core.db import atomic
from core.metrics import track_performance
from core.notifications import NotificationEventType
from models import Chassis, Engine, OperationalState, UsageRecord
from models.enums import EquipmentKind
from schemas.fleet import ChassisOut, EngineOut, ReadinessOut, RemainingDistanceOut, UsageOut
from services import queries
from services.base import TransactionalService
from services.exceptions import ChassisNotFoundError, EngineNotFoundError, FleetValidationError
from services.thresholds import Urgency, next_service_distance, urgency_level

logger = logging.getLogger(__name__)

UnitOut = Union[ChassisOut, EngineOut]


def _not_found(kind: EquipmentKind, unit_id: int) -> Exception:
    if kind == EquipmentKind.ENGINE:
        return EngineNotFoundError(f"Engine {unit_id} not found.")
    return ChassisNotFoundError(f"Chassis {unit_id} not found.")


class EquipmentService(TransactionalService):
    """
    Equipment registry operations: operational state, kilometrage and
    read-only service projections for chassis and engines.

    Distance written through ``record_usage`` and ``update_odometer`` accrues
    on the mounted engine by the same delta in the same transaction.
    """

    # ---- writes -----------------------------------------------------------

    @track_performance(service_name="EquipmentService")
    async def change_state(
        self,
        kind: EquipmentKind,
        unit_id: int,
        state: OperationalState,
        notes: Optional[str] = None,
    ) -> UnitOut:
        kind = EquipmentKind(kind)
        model = queries.unit_model(kind)

        async def _change():
            async with atomic(self.db):
                unit = await queries.get_for_update(self.db, model, unit_id)
                if unit is None:
                    raise _not_found(kind, unit_id)
                previous = unit.state
                unit.state = OperationalState(state)
                unit.state_notes = notes
                await self.db.flush()
                return previous, await self._unit_out(kind, unit)

        async with self.locks.hold((kind.value, unit_id)):
            previous, out = await self.run_serialized(_change)

        logger.info(
            f"{kind.value.capitalize()} {unit_id} state {previous.value} -> {out.state.value}",
            extra={"kind": kind.value, "unit_id": unit_id, "state": out.state.value},
        )
        self.emit(
            NotificationEventType.STATE_CHANGED,
            f"{kind.value.capitalize()} {out.serial_number} is now {out.state.value}",
            kind=kind.value,
            unit_id=unit_id,
            previous_state=previous.value,
            state=out.state.value,
            notes=notes,
        )
        return out

    @track_performance(service_name="EquipmentService")
    async def record_usage(
        self,
        chassis_id: int,
        session_date: date,
        laps: int = 0,
        distance_km: Optional[float] = None,
        lap_length_m: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> UsageOut:
        """
        Appends an operating session and accrues its distance.

        When only the lap length is known, distance = laps x lap length / 1000.
        """
        if laps is None or laps < 0:
            raise FleetValidationError("Lap count cannot be negative.", "laps")
        if distance_km is None:
            if lap_length_m is None:
                raise FleetValidationError("Provide distance_km or lap_length_m.", "distance_km")
            if lap_length_m <= 0:
                raise FleetValidationError("Lap length must be positive.", "lap_length_m")
            distance_km = laps * lap_length_m / 1000.0
        if distance_km < 0:
            raise FleetValidationError("Distance cannot be negative.", "distance_km")

        async def _record():
            async with atomic(self.db):
                chassis = await queries.get_for_update(self.db, Chassis, chassis_id)
                if chassis is None:
                    raise ChassisNotFoundError(f"Chassis {chassis_id} not found.")

                record = UsageRecord(
                    chassis_id=chassis_id,
                    session_date=session_date,
                    laps=laps,
                    lap_length_m=lap_length_m,
                    distance_km=distance_km,
                    notes=notes,
                )
                self.db.add(record)
                engine = await self._accrue(chassis, distance_km)
                await self.db.flush()

                return UsageOut(
                    id=record.id,
                    chassis_id=chassis_id,
                    session_date=record.session_date,
                    laps=record.laps,
                    distance_km=record.distance_km,
                    chassis_distance_km=chassis.distance_km,
                    engine_id=engine.id if engine else None,
                    engine_distance_km=engine.distance_km if engine else None,
                )

        async with self.locks.hold(("chassis", chassis_id)):
            out = await self.run_serialized(_record)

        logger.info(
            f"Usage recorded on chassis {chassis_id}: {out.distance_km:.1f} km",
            extra={"chassis_id": chassis_id, "distance_km": out.distance_km, "engine_id": out.engine_id},
        )
        return out

    @track_performance(service_name="EquipmentService")
    async def update_odometer(self, chassis_id: int, reading_km: float) -> ChassisOut:
        """Sets the chassis odometer forward; the difference also accrues on the mounted engine."""
        if reading_km is None or reading_km < 0:
            raise FleetValidationError("Odometer reading cannot be negative.", "distance_km")

        async def _update():
            async with atomic(self.db):
                chassis = await queries.get_for_update(self.db, Chassis, chassis_id)
                if chassis is None:
                    raise ChassisNotFoundError(f"Chassis {chassis_id} not found.")
                if reading_km < chassis.distance_km:
                    raise FleetValidationError(
                        f"Odometer reading {reading_km} is below the current {chassis.distance_km}; "
                        f"use a distance correction instead.",
                        "distance_km",
                    )
                await self._accrue(chassis, reading_km - chassis.distance_km)
                await self.db.flush()
                return ChassisOut.model_validate(chassis)

        async with self.locks.hold(("chassis", chassis_id)):
            return await self.run_serialized(_update)

    @track_performance(service_name="EquipmentService")
    async def correct_distance(self, kind: EquipmentKind, unit_id: int, distance_km: float) -> UnitOut:
        """Corrective edit of a single unit's distance. May decrease it; never propagated."""
        kind = EquipmentKind(kind)
        if distance_km is None or distance_km < 0:
            raise FleetValidationError("Distance cannot be negative.", "distance_km")
        model = queries.unit_model(kind)

        async def _correct():
            async with atomic(self.db):
                unit = await queries.get_for_update(self.db, model, unit_id)
                if unit is None:
                    raise _not_found(kind, unit_id)
                logger.warning(
                    f"Distance correction on {kind.value} {unit_id}: {unit.distance_km} -> {distance_km}"
                )
                unit.distance_km = distance_km
                await self.db.flush()
                return await self._unit_out(kind, unit)

        async with self.locks.hold((kind.value, unit_id)):
            return await self.run_serialized(_correct)

    async def _accrue(self, chassis: Chassis, delta: float) -> Optional[Engine]:
        """Adds ``delta`` to the chassis and to its mounted engine. Caller owns the transaction."""
        chassis.distance_km = (chassis.distance_km or 0.0) + delta
        if chassis.engine_id is None:
            return None
        engine = await queries.get_for_update(self.db, Engine, chassis.engine_id)
        if engine is not None:
            engine.distance_km = (engine.distance_km or 0.0) + delta
        return engine

    async def _unit_out(self, kind: EquipmentKind, unit) -> UnitOut:
        if kind == EquipmentKind.ENGINE:
            out = EngineOut.model_validate(unit)
            out.mounted_on = await queries.host_chassis_id(self.db, unit.id)
            return out
        return ChassisOut.model_validate(unit)

    # ---- reads --------------------------------------------------------------

    def _projection(self, kind: EquipmentKind, unit_id: int, serial: str, distance: float) -> RemainingDistanceOut:
        interval = self.config.interval_for(kind.value)
        next_km = next_service_distance(distance, interval)
        remaining = next_km - distance
        level = urgency_level(remaining, self.config.alert_window)
        return RemainingDistanceOut(
            kind=kind,
            id=unit_id,
            serial_number=serial,
            distance_km=distance,
            interval_km=interval,
            next_service_km=next_km,
            remaining_km=remaining,
            overdue=level is Urgency.OVERDUE,
            urgency=int(level),
        )

    async def remaining_distance(self, kind: EquipmentKind, unit_id: int) -> RemainingDistanceOut:
        kind = EquipmentKind(kind)
        unit = await queries.get_fresh(self.db, queries.unit_model(kind), unit_id)
        if unit is None:
            raise _not_found(kind, unit_id)
        return self._projection(kind, unit.id, unit.serial_number, unit.distance_km)

    async def list_remaining(self, kind: EquipmentKind) -> List[RemainingDistanceOut]:
        """Projections for every unit of ``kind`` still in service, most urgent first."""
        kind = EquipmentKind(kind)
        rows = await (queries.active_engines if kind == EquipmentKind.ENGINE else queries.active_chassis)(self.db)
        projections = [self._projection(kind, row.id, row.serial_number, row.distance_km) for row in rows]
        return sorted(projections, key=lambda p: (p.remaining_km, p.id))

    async def readiness(self, chassis_id: int) -> ReadinessOut:
        """
        Whether a chassis can go on track.

        Ready means: chassis AVAILABLE, an AVAILABLE engine mounted, and neither
        unit overdue. A unit inside the alert window is ready with a warning.
        """
        chassis = await queries.get_fresh(self.db, Chassis, chassis_id)
        if chassis is None:
            raise ChassisNotFoundError(f"Chassis {chassis_id} not found.")

        chassis_proj = self._projection(
            EquipmentKind.CHASSIS, chassis.id, chassis.serial_number, chassis.distance_km
        )
        engine = None
        engine_proj = None
        if chassis.engine_id is not None:
            engine = await queries.get_fresh(self.db, Engine, chassis.engine_id)
            if engine is not None:
                engine_proj = self._projection(
                    EquipmentKind.ENGINE, engine.id, engine.serial_number, engine.distance_km
                )

        reason = None
        if chassis.state != OperationalState.AVAILABLE:
            reason = f"Chassis is {chassis.state.value}"
        elif engine is None:
            reason = "No engine mounted"
        elif engine.state != OperationalState.AVAILABLE:
            reason = f"Engine is {engine.state.value}"
        elif chassis_proj.overdue:
            reason = "Chassis service overdue"
        elif engine_proj.overdue:
            reason = "Engine service overdue"

        warning = None
        if reason is None:
            due_soon = [
                label
                for label, proj in (("Chassis", chassis_proj), ("Engine", engine_proj))
                if proj is not None and proj.urgency == Urgency.DUE_SOON
            ]
            if due_soon:
                warning = " and ".join(due_soon) + " service due soon"

        return ReadinessOut(
            chassis_id=chassis_id,
            ready=reason is None,
            reason=reason,
            warning=warning,
            chassis=chassis_proj,
            engine=engine_proj,
        )
