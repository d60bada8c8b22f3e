import logging
from datetime import datetime
from typing import Optional

from core.db import atomic
from core.metrics import track_performance
from core.notifications import NotificationEventType
from core.retry import RetryableError
from models import Chassis, Engine, MountingHistory, OperationalState
from schemas.fleet import MountingHistoryOut
from services import queries
from services.base import TransactionalService
from services.exceptions import (
    ChassisAlreadyHasEngineError,
    ChassisNotFoundError,
    EngineAlreadyMountedError,
    EngineNotFoundError,
    EngineUnavailableError,
    FleetValidationError,
    MountingHistoryMissingError,
    NoEngineMountedError,
)

logger = logging.getLogger(__name__)


def _append_notes(existing: Optional[str], extra: Optional[str]) -> Optional[str]:
    if not extra:
        return existing
    return f"{existing or ''} {extra}".strip()


class CouplingService(TransactionalService):
    """
    Mount and dismount engines on chassis.

    This is the only code path that writes ``Chassis.engine_id`` or opens and
    closes ``MountingHistory`` rows. Each operation:
    - takes the in-process locks of every unit it touches (chassis first)
    - re-reads those rows with ``FOR UPDATE`` inside one transaction
    - checks every precondition before the first write
    - retries on store conflicts, then gives up with ConcurrentModificationError
    """

    @track_performance(service_name="CouplingService")
    async def mount(
        self,
        chassis_id: int,
        engine_id: int,
        technician: str,
        mounted_at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> MountingHistoryOut:
        """
        Mounts an engine on a chassis.

        Raises:
            EngineNotFoundError, EngineAlreadyMountedError, EngineUnavailableError,
            ChassisNotFoundError, ChassisAlreadyHasEngineError: precondition failures,
                checked in that order; nothing is written.
            FleetValidationError: blank technician or a mount date earlier than
                the last coupling of either unit.
            ConcurrentModificationError: conflicts persisted through every retry.
        """
        if not technician or not technician.strip():
            raise FleetValidationError("Technician is required.", "technician")

        async with self.locks.hold(("chassis", chassis_id), ("engine", engine_id)):
            history = await self.run_serialized(
                self._mount_once, chassis_id, engine_id, technician.strip(), mounted_at, notes
            )

        logger.info(
            f"Engine {engine_id} mounted on chassis {chassis_id}",
            extra={"chassis_id": chassis_id, "engine_id": engine_id, "technician": history.technician},
        )
        self.emit(
            NotificationEventType.COUPLING_CHANGED,
            f"Engine {engine_id} mounted on chassis {chassis_id}",
            action="mount",
            chassis_id=chassis_id,
            engine_id=engine_id,
            history_id=history.id,
        )
        return history

    async def _mount_once(
        self,
        chassis_id: int,
        engine_id: int,
        technician: str,
        mounted_at: Optional[datetime],
        notes: Optional[str],
    ) -> MountingHistoryOut:
        async with atomic(self.db):
            engine = await queries.get_for_update(self.db, Engine, engine_id)
            if engine is None:
                raise EngineNotFoundError(f"Engine {engine_id} not found.")

            host_id = await queries.host_chassis_id(self.db, engine_id)
            if host_id is not None:
                raise EngineAlreadyMountedError(
                    f"Engine {engine_id} is already mounted on chassis {host_id}."
                )

            # An open history row is an active coupling even without the chassis reference
            stale = await queries.open_mounting_of_engine(self.db, engine_id)
            if stale is not None:
                raise EngineAlreadyMountedError(
                    f"Engine {engine_id} has an open mounting record (#{stale.id}) "
                    f"on chassis {stale.chassis_id}."
                )

            if engine.state != OperationalState.AVAILABLE:
                raise EngineUnavailableError(
                    f"Engine {engine_id} is {engine.state.value}, expected AVAILABLE."
                )

            chassis = await queries.get_for_update(self.db, Chassis, chassis_id)
            if chassis is None:
                raise ChassisNotFoundError(f"Chassis {chassis_id} not found.")

            if chassis.engine_id is not None:
                raise ChassisAlreadyHasEngineError(
                    f"Chassis {chassis_id} already carries engine {chassis.engine_id}."
                )

            stale = await queries.open_mounting_of_chassis(self.db, chassis_id)
            if stale is not None:
                raise ChassisAlreadyHasEngineError(
                    f"Chassis {chassis_id} has an open mounting record (#{stale.id}) "
                    f"for engine {stale.engine_id}."
                )

            started_at = self.local_time(mounted_at)
            last_end = await queries.latest_coupling_end(self.db, chassis_id, engine_id)
            if last_end is not None and started_at < last_end:
                raise FleetValidationError(
                    f"Mount date {started_at.isoformat()} precedes the last dismount "
                    f"({last_end.isoformat()}).",
                    "mounted_at",
                )

            history = MountingHistory(
                chassis_id=chassis_id,
                engine_id=engine_id,
                started_at=started_at,
                chassis_start_km=chassis.distance_km,
                engine_start_km=engine.distance_km,
                technician=technician,
                notes=notes or None,
            )
            self.db.add(history)

            chassis.engine_id = engine_id
            engine.state = OperationalState.AVAILABLE
            await self.db.flush()

            return MountingHistoryOut.model_validate(history)

    @track_performance(service_name="CouplingService")
    async def dismount(
        self,
        chassis_id: int,
        technician: str,
        dismounted_at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> MountingHistoryOut:
        """
        Removes the engine currently mounted on a chassis and closes its history row.

        Raises:
            ChassisNotFoundError, NoEngineMountedError: precondition failures.
            MountingHistoryMissingError: the chassis references an engine but no
                open history row matches the pair.
            FleetValidationError: blank technician or a dismount date before the mount.
            ConcurrentModificationError: conflicts persisted through every retry.
        """
        if not technician or not technician.strip():
            raise FleetValidationError("Technician is required.", "technician")

        # The engine id is only known after reading the chassis, so the chassis
        # lock comes first and the engine lock is taken once the id is known.
        async with self.locks.hold(("chassis", chassis_id)):
            chassis = await queries.get_fresh(self.db, Chassis, chassis_id)
            if chassis is None:
                raise ChassisNotFoundError(f"Chassis {chassis_id} not found.")
            if chassis.engine_id is None:
                raise NoEngineMountedError(f"Chassis {chassis_id} has no engine mounted.")

            async with self.locks.hold(("engine", chassis.engine_id)):
                history = await self.run_serialized(
                    self._dismount_once, chassis_id, chassis.engine_id, technician.strip(), dismounted_at, notes
                )

        logger.info(
            f"Engine {history.engine_id} dismounted from chassis {chassis_id}",
            extra={"chassis_id": chassis_id, "engine_id": history.engine_id},
        )
        self.emit(
            NotificationEventType.COUPLING_CHANGED,
            f"Engine {history.engine_id} dismounted from chassis {chassis_id}",
            action="dismount",
            chassis_id=chassis_id,
            engine_id=history.engine_id,
            history_id=history.id,
        )
        return history

    async def _dismount_once(
        self,
        chassis_id: int,
        engine_id: int,
        technician: str,
        dismounted_at: Optional[datetime],
        notes: Optional[str],
    ) -> MountingHistoryOut:
        async with atomic(self.db):
            chassis = await queries.get_for_update(self.db, Chassis, chassis_id)
            if chassis is None:
                raise ChassisNotFoundError(f"Chassis {chassis_id} not found.")
            if chassis.engine_id is None:
                raise NoEngineMountedError(f"Chassis {chassis_id} has no engine mounted.")
            if chassis.engine_id != engine_id:
                # Re-coupled by another process since the engine lock was chosen
                raise RetryableError(f"Chassis {chassis_id} coupling changed during dismount.")

            engine = await queries.get_for_update(self.db, Engine, engine_id)
            history = await queries.open_mounting(self.db, chassis_id, engine_id)
            if engine is None or history is None:
                raise MountingHistoryMissingError(
                    f"Chassis {chassis_id} references engine {engine_id} "
                    f"but no open mounting record exists."
                )

            ended_at = self.local_time(dismounted_at)
            if ended_at < history.started_at:
                raise FleetValidationError(
                    f"Dismount date {ended_at.isoformat()} precedes the mount "
                    f"({history.started_at.isoformat()}).",
                    "dismounted_at",
                )

            history.ended_at = ended_at
            history.chassis_end_km = chassis.distance_km
            history.engine_end_km = engine.distance_km
            history.notes = _append_notes(history.notes, notes)

            chassis.engine_id = None
            engine.state = OperationalState.AVAILABLE
            await self.db.flush()

            return MountingHistoryOut.model_validate(history)
