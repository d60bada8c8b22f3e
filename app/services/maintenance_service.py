import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from core.db import atomic
from core.metrics import track_performance
from core.notifications import NotificationEventType
from models import Chassis, Engine, Inspection, Maintenance, MaintenancePart, MaintenanceType, OperationalState, Part, Severity
from schemas.maintenance import InspectionOut, MaintenanceOut, PartUsageIn
from services import queries
from services.alert_service import create_stock_alert_if_absent
from services.base import TransactionalService
from services.exceptions import (
    ChassisNotFoundError,
    EngineNotFoundError,
    FleetValidationError,
    InsufficientStockError,
    MaintenanceAlreadyFinalizedError,
    MaintenanceNotFoundError,
    PartNotFoundError,
)

logger = logging.getLogger(__name__)

INSPECTION_VALIDITY = timedelta(hours=24)


class MaintenanceService(TransactionalService):
    """
    Maintenance events and daily inspections.

    Opening an event takes its chassis and/or engine out of service
    (IN_MAINTENANCE) and consumes parts; finalizing returns them to
    AVAILABLE. Neither step completes plannings nor handles alerts.
    """

    @track_performance(service_name="MaintenanceService")
    async def open_maintenance(
        self,
        maintenance_type: MaintenanceType,
        technician: str,
        chassis_id: Optional[int] = None,
        engine_id: Optional[int] = None,
        performed_at: Optional[datetime] = None,
        labour_cost: float = 0.0,
        notes: Optional[str] = None,
        parts: Sequence[PartUsageIn] = (),
    ) -> MaintenanceOut:
        if chassis_id is None and engine_id is None:
            raise FleetValidationError("A maintenance targets a chassis, an engine, or both.", "chassis_id")
        if not technician or not technician.strip():
            raise FleetValidationError("Technician is required.", "technician")
        if labour_cost is None or labour_cost < 0:
            raise FleetValidationError("Labour cost cannot be negative.", "labour_cost")
        for usage in parts:
            if usage.quantity <= 0:
                raise FleetValidationError("Part quantity must be positive.", "parts")

        keys = [("part", usage.part_id) for usage in parts]
        if chassis_id is not None:
            keys.append(("chassis", chassis_id))
        if engine_id is not None:
            keys.append(("engine", engine_id))

        async def _open():
            async with atomic(self.db):
                chassis = engine = None
                if chassis_id is not None:
                    chassis = await queries.get_for_update(self.db, Chassis, chassis_id)
                    if chassis is None:
                        raise ChassisNotFoundError(f"Chassis {chassis_id} not found.")
                if engine_id is not None:
                    engine = await queries.get_for_update(self.db, Engine, engine_id)
                    if engine is None:
                        raise EngineNotFoundError(f"Engine {engine_id} not found.")

                maintenance = Maintenance(
                    maintenance_type=maintenance_type,
                    performed_at=self.local_time(performed_at),
                    chassis_id=chassis_id,
                    engine_id=engine_id,
                    chassis_distance_km=chassis.distance_km if chassis else None,
                    engine_distance_km=engine.distance_km if engine else None,
                    technician=technician.strip(),
                    labour_cost=labour_cost,
                    notes=notes,
                )
                self.db.add(maintenance)

                low_stock = await self._consume_parts(maintenance, parts)
                maintenance.total_cost = labour_cost + sum(
                    line.quantity * line.unit_price for line in maintenance.parts_used
                )

                for unit in (chassis, engine):
                    if unit is not None:
                        unit.state = OperationalState.IN_MAINTENANCE

                await self.db.flush()
                return MaintenanceOut.model_validate(maintenance), low_stock

        async with self.locks.hold(*keys):
            out, low_stock = await self.run_serialized(_open)

        logger.info(
            f"Maintenance {out.id} opened ({out.maintenance_type.value})",
            extra={"maintenance_id": out.id, "chassis_id": chassis_id, "engine_id": engine_id, "total_cost": out.total_cost},
        )
        for alert in low_stock:
            self.emit(
                NotificationEventType.STOCK_OUT if alert.severity == Severity.CRITICAL else NotificationEventType.STOCK_LOW,
                alert.title,
                alert_id=alert.id,
                part_id=alert.part_id,
            )
        return out

    async def _consume_parts(self, maintenance: Maintenance, parts: Sequence[PartUsageIn]) -> List:
        """Withdraws each part from stock; returns the STOCK alerts raised on the way."""
        alerts = []
        for usage in parts:
            part = await queries.get_for_update(self.db, Part, usage.part_id)
            if part is None:
                raise PartNotFoundError(f"Part {usage.part_id} not found.")
            if part.quantity_in_stock < usage.quantity:
                raise InsufficientStockError(
                    f"Only {part.quantity_in_stock} x {part.reference} in stock, {usage.quantity} requested."
                )
            part.quantity_in_stock -= usage.quantity
            maintenance.parts_used.append(
                MaintenancePart(
                    part_id=part.id,
                    quantity=usage.quantity,
                    unit_price=part.unit_price if usage.unit_price is None else usage.unit_price,
                )
            )
            alert = await create_stock_alert_if_absent(
                self.db, part.id, part.name, part.quantity_in_stock, part.minimum_stock, self.now()
            )
            if alert is not None:
                alerts.append(alert)
        return alerts

    @track_performance(service_name="MaintenanceService")
    async def finalize_maintenance(self, maintenance_id: int, notes: Optional[str] = None) -> MaintenanceOut:
        """Closes a maintenance event. Units still IN_MAINTENANCE go back to AVAILABLE."""

        async def _finalize():
            async with atomic(self.db):
                maintenance = await queries.get_for_update(self.db, Maintenance, maintenance_id)
                if maintenance is None:
                    raise MaintenanceNotFoundError(f"Maintenance {maintenance_id} not found.")
                if maintenance.finalized:
                    raise MaintenanceAlreadyFinalizedError(f"Maintenance {maintenance_id} is already finalized.")

                maintenance.finalized = True
                maintenance.finalized_at = self.now()
                if notes:
                    maintenance.notes = f"{maintenance.notes or ''} {notes}".strip()

                for model, unit_id in ((Chassis, maintenance.chassis_id), (Engine, maintenance.engine_id)):
                    if unit_id is None:
                        continue
                    unit = await queries.get_for_update(self.db, model, unit_id)
                    if unit is not None and unit.state == OperationalState.IN_MAINTENANCE:
                        unit.state = OperationalState.AVAILABLE

                await self.db.flush()
                return MaintenanceOut.model_validate(maintenance)

        out = await self.run_serialized(_finalize)
        logger.info(f"Maintenance {maintenance_id} finalized", extra={"maintenance_id": maintenance_id})
        return out

    @track_performance(service_name="MaintenanceService")
    async def record_inspection(
        self,
        chassis_id: int,
        conforming: bool,
        inspector: str,
        inspected_at: Optional[datetime] = None,
        comments: Optional[str] = None,
    ) -> InspectionOut:
        """Logs a daily inspection. A non-conforming one moves the chassis to TO_INSPECT."""
        if not inspector or not inspector.strip():
            raise FleetValidationError("Inspector is required.", "inspector")

        async def _record():
            async with atomic(self.db):
                chassis = await queries.get_for_update(self.db, Chassis, chassis_id)
                if chassis is None:
                    raise ChassisNotFoundError(f"Chassis {chassis_id} not found.")

                inspection = Inspection(
                    chassis_id=chassis_id,
                    inspected_at=self.local_time(inspected_at),
                    conforming=conforming,
                    inspector=inspector.strip(),
                    comments=comments,
                )
                self.db.add(inspection)
                if not conforming:
                    chassis.state = OperationalState.TO_INSPECT
                    chassis.state_notes = comments
                await self.db.flush()
                return InspectionOut.model_validate(inspection), chassis.serial_number

        async with self.locks.hold(("chassis", chassis_id)):
            out, serial = await self.run_serialized(_record)

        if not out.conforming:
            logger.warning(f"Chassis {serial} failed inspection", extra={"chassis_id": chassis_id})
            self.emit(
                NotificationEventType.INSPECTION_FAILED,
                f"Chassis {serial} failed inspection",
                chassis_id=chassis_id,
                inspection_id=out.id,
                comments=comments,
            )
        return out

    async def inspection_due(self, chassis_id: int, now: Optional[datetime] = None) -> bool:
        """True when the chassis has no inspection in the last 24 hours."""
        if await queries.get_fresh(self.db, Chassis, chassis_id) is None:
            raise ChassisNotFoundError(f"Chassis {chassis_id} not found.")
        latest = await queries.latest_inspection_at(self.db, chassis_id)
        now = self.local_time(now)
        return latest is None or latest < now - INSPECTION_VALIDITY
