import logging
from datetime import date, timedelta
from typing import Optional

from core.db import atomic
from core.metrics import track_performance
from models import MaintenanceType, Planning, Severity
from models.enums import EquipmentKind
from schemas.maintenance import PlanningOut, PlanningPassOut
from services import queries
from services.base import TransactionalService
from services.batch import BatchPass
from services.exceptions import PlanningAlreadyCompletedError, PlanningNotFoundError
from services.thresholds import due_message, next_service_distance, round_half_up, urgency_level, Urgency

logger = logging.getLogger(__name__)

USAGE_LOOKBACK_DAYS = 30


def days_until_service(remaining_km: float, average_daily_km: float) -> int:
    """At least one day; rounds half-up."""
    return max(1, round_half_up(remaining_km / average_daily_km))


class PlanningService(TransactionalService):
    """
    Schedule forecasting pass and planning lifecycle.

    Chassis dates are projected from the average daily distance of the last
    30 days of usage; engines, whose usage is spread over several chassis,
    always use the fixed engine horizon. Completing a planning never touches
    alerts.
    """

    @track_performance(service_name="PlanningService")
    async def run_schedule_pass(self) -> PlanningPassOut:
        batch = BatchPass(self.db, "schedule_pass", "planning", ("chassis", "engine"))
        today = self.now().date()

        for row in await queries.active_chassis(self.db):
            await batch.evaluate("chassis", row.id, self._planning_unit(EquipmentKind.CHASSIS, row, today))
        for row in await queries.active_engines(self.db):
            await batch.evaluate("engine", row.id, self._planning_unit(EquipmentKind.ENGINE, row, today))

        return PlanningPassOut(**batch.summary())

    async def estimate_date(self, kind: EquipmentKind, unit_id: int, remaining_km: float, today: date) -> date:
        if kind == EquipmentKind.ENGINE:
            return today + timedelta(days=self.config.engine_default_horizon_days)

        total_km, records = await queries.usage_since(
            self.db, unit_id, today - timedelta(days=USAGE_LOOKBACK_DAYS)
        )
        average_daily_km = total_km / USAGE_LOOKBACK_DAYS
        if records == 0 or average_daily_km <= 0:
            return today + timedelta(days=self.config.no_data_default_horizon_days)
        return today + timedelta(days=days_until_service(remaining_km, average_daily_km))

    def _planning_unit(self, kind: EquipmentKind, row, today: date):
        is_engine = kind == EquipmentKind.ENGINE

        async def unit() -> Optional[PlanningOut]:
            interval = self.config.interval_for(kind.value)
            target_km = next_service_distance(row.distance_km, interval)
            remaining = target_km - row.distance_km
            level = urgency_level(remaining, self.config.schedule_window)
            if level is Urgency.NONE:
                return None

            async with atomic(self.db):
                if await queries.open_planning_exists(self.db, is_engine, row.id):
                    return None

                label = f"{kind.value.capitalize()} {row.serial_number}"
                planning = Planning(
                    planning_type=MaintenanceType.ENGINE_OVERHAUL if is_engine else MaintenanceType.REGULAR_SERVICE,
                    title=f"Service {label}",
                    description=f"{due_message(remaining)} (service point {target_km:.0f} km)",
                    estimated_date=await self.estimate_date(kind, row.id, remaining, today),
                    is_engine=is_engine,
                    target_id=row.id,
                    target_distance_km=target_km,
                    severity=Severity.HIGH if level is Urgency.OVERDUE else Severity.MEDIUM,
                    created_at=self.now(),
                )
                self.db.add(planning)
                await self.db.flush()
                return PlanningOut.model_validate(planning)

        return unit

    @track_performance(service_name="PlanningService")
    async def mark_completed(self, planning_id: int) -> PlanningOut:
        """Completes a planning. Completing twice raises PlanningAlreadyCompletedError."""

        async def _complete() -> PlanningOut:
            async with atomic(self.db):
                planning = await queries.get_for_update(self.db, Planning, planning_id)
                if planning is None:
                    raise PlanningNotFoundError(f"Planning {planning_id} not found.")
                if planning.completed:
                    raise PlanningAlreadyCompletedError(f"Planning {planning_id} is already completed.")
                planning.completed = True
                planning.completed_at = self.now()
                await self.db.flush()
                return PlanningOut.model_validate(planning)

        out = await self.run_serialized(_complete)
        logger.info(f"Planning {planning_id} completed", extra={"planning_id": planning_id})
        return out
