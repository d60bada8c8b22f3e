import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.db import atomic
from core.metrics import track_performance
from core.notifications import NotificationEventType
from models import Alert, AlertType, Severity
from models.enums import EquipmentKind
from schemas.maintenance import AlertOut, AlertPassOut
from services import queries
from services.base import TransactionalService
from services.batch import BatchPass
from services.exceptions import AlertAlreadyHandledError, AlertNotFoundError, FleetValidationError
from services.thresholds import due_message, maintenance_severity, remaining_distance, stock_severity

logger = logging.getLogger(__name__)


async def create_stock_alert_if_absent(
    db: AsyncSession,
    part_id: int,
    name: str,
    quantity: int,
    minimum: int,
    created_at: datetime,
) -> Optional[Alert]:
    """
    Adds (without committing) a STOCK alert for a part at or below its minimum,
    unless an unhandled one already exists. Returns the new alert or None.
    """
    severity = stock_severity(quantity, minimum)
    if severity is None:
        return None
    if await queries.open_alert_exists(db, queries.AlertTarget.PART, part_id, AlertType.STOCK):
        return None

    title = f"Out of stock: {name}" if severity == Severity.CRITICAL else f"Low stock: {name}"
    alert = Alert(
        alert_type=AlertType.STOCK,
        severity=severity,
        title=title,
        message=f"{name}: {quantity} in stock (minimum {minimum})",
        part_id=part_id,
        created_at=created_at,
    )
    db.add(alert)
    await db.flush()
    return alert


class AlertService(TransactionalService):
    """
    Alert generation pass and alert lifecycle.

    The pass never creates a second unhandled alert for the same
    (entity, alert type): the existence check runs before every insert and
    the partial unique indexes reject any insert that races past it.
    """

    @track_performance(service_name="AlertService")
    async def run_alert_pass(self) -> AlertPassOut:
        """
        Scans chassis, engines and parts and creates the missing alerts.

        Units in OUT_OF_SERVICE are skipped. A unit whose evaluation fails is
        reported in ``failures`` and does not stop the pass.
        """
        batch = BatchPass(self.db, "alert_pass", "alert", ("chassis", "engine", "stock"))

        for kind, rows in (
            (EquipmentKind.CHASSIS, await queries.active_chassis(self.db)),
            (EquipmentKind.ENGINE, await queries.active_engines(self.db)),
        ):
            for row in rows:
                await batch.evaluate(kind.value, row.id, self._maintenance_unit(kind, row))

        for row in await queries.low_stock_parts(self.db):
            await batch.evaluate("stock", row.id, self._stock_unit(row))

        return AlertPassOut(**batch.summary())

    def _maintenance_unit(self, kind: EquipmentKind, row):
        async def unit() -> Optional[AlertOut]:
            remaining = remaining_distance(row.distance_km, self.config.interval_for(kind.value))
            severity = maintenance_severity(remaining, self.config.alert_window)
            if severity is None:
                return None

            target = queries.AlertTarget(kind.value)
            async with atomic(self.db):
                if await queries.open_alert_exists(self.db, target, row.id, AlertType.MAINTENANCE):
                    return None

                overdue = severity == Severity.HIGH
                label = f"{kind.value.capitalize()} {row.serial_number}"
                alert = Alert(
                    alert_type=AlertType.MAINTENANCE,
                    severity=severity,
                    title=f"Maintenance {'overdue' if overdue else 'due'}: {label}",
                    message=f"{label}: {due_message(remaining)}",
                    created_at=self.now(),
                    **{f"{kind.value}_id": row.id},
                )
                self.db.add(alert)
                await self.db.flush()
                out = AlertOut.model_validate(alert)

            self.emit(
                NotificationEventType.MAINTENANCE_OVERDUE if overdue else NotificationEventType.MAINTENANCE_DUE,
                out.title,
                alert_id=out.id,
                kind=kind.value,
                unit_id=row.id,
                remaining_km=remaining,
            )
            return out

        return unit

    def _stock_unit(self, row):
        async def unit() -> Optional[AlertOut]:
            async with atomic(self.db):
                alert = await create_stock_alert_if_absent(
                    self.db, row.id, row.name, row.quantity_in_stock, row.minimum_stock, self.now()
                )
                if alert is None:
                    return None
                out = AlertOut.model_validate(alert)

            self.emit(
                NotificationEventType.STOCK_OUT if out.severity == Severity.CRITICAL else NotificationEventType.STOCK_LOW,
                out.title,
                alert_id=out.id,
                part_id=row.id,
                quantity=row.quantity_in_stock,
            )
            return out

        return unit

    @track_performance(service_name="AlertService")
    async def mark_handled(self, alert_id: int, handled_by: str) -> AlertOut:
        """
        Marks an alert handled. Handling is a one-way transition: an alert
        that is already handled is rejected with AlertAlreadyHandledError.
        """
        if not handled_by or not handled_by.strip():
            raise FleetValidationError("Handler identity is required.", "handled_by")

        async def _handle() -> AlertOut:
            async with atomic(self.db):
                alert = await queries.get_for_update(self.db, Alert, alert_id)
                if alert is None:
                    raise AlertNotFoundError(f"Alert {alert_id} not found.")
                if alert.handled:
                    raise AlertAlreadyHandledError(
                        f"Alert {alert_id} was already handled by {alert.handled_by}."
                    )
                alert.handled = True
                alert.handled_by = handled_by.strip()
                alert.handled_at = self.now()
                await self.db.flush()
                return AlertOut.model_validate(alert)

        out = await self.run_serialized(_handle)
        logger.info(f"Alert {alert_id} handled by {out.handled_by}", extra={"alert_id": alert_id})
        return out
