"""
Integration tests for the alert pass and alert lifecycle.
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from core.config import MaintenanceConfig
from core.notifications import NotificationEventType
from models import Alert, AlertType, OperationalState, Severity
from services.alert_service import AlertService
from services.exceptions import AlertAlreadyHandledError, AlertNotFoundError, FleetValidationError


async def alert_count(db) -> int:
    return (await db.execute(select(func.count(Alert.id)))).scalar_one()


class TestAlertPass:

    async def test_chassis_near_threshold_gets_medium_alert(
        self, async_db_session, make_chassis, notifier, clock, locks
    ):
        """9,800 km with a 10,000 km interval and an 800 km window: one MEDIUM alert, 200 km left"""
        config = MaintenanceConfig(chassis_interval=10000, engine_interval=3000, alert_window=800)
        service = AlertService(async_db_session, config=config, notifier=notifier, clock=clock, locks=locks)
        chassis = await make_chassis(distance_km=9800.0)

        report = await service.run_alert_pass()

        assert report.counts == {"chassis": 1, "engine": 0, "stock": 0, "total": 1}
        alert = report.created[0]
        assert alert.alert_type == AlertType.MAINTENANCE
        assert alert.severity == Severity.MEDIUM
        assert alert.chassis_id == chassis.id
        assert alert.engine_id is None and alert.part_id is None
        assert "Service due in 200 km" in alert.message
        assert report.failures == []

    async def test_overdue_engine_gets_high_alert(self, alert_service, make_engine, notifier):
        engine = await make_engine(distance_km=3000.0)

        report = await alert_service.run_alert_pass()

        assert report.counts["engine"] == 1
        alert = report.created[0]
        assert alert.severity == Severity.HIGH
        assert alert.engine_id == engine.id
        assert "Service overdue" in alert.message
        assert len(notifier.of_type(NotificationEventType.MAINTENANCE_OVERDUE)) == 1

    async def test_units_outside_window_get_no_alert(self, alert_service, make_chassis, make_engine):
        await make_chassis(distance_km=1000.0)
        await make_engine(distance_km=2799.0)

        report = await alert_service.run_alert_pass()

        assert report.counts["total"] == 0
        assert report.created == []

    async def test_out_of_service_units_are_skipped(self, alert_service, make_chassis, make_engine):
        await make_chassis(distance_km=6000.0, state=OperationalState.OUT_OF_SERVICE)
        await make_engine(distance_km=3000.0, state=OperationalState.OUT_OF_SERVICE)

        report = await alert_service.run_alert_pass()

        assert report.counts["total"] == 0

    async def test_units_in_maintenance_are_still_scanned(self, alert_service, make_chassis):
        await make_chassis(distance_km=5900.0, state=OperationalState.IN_MAINTENANCE)

        report = await alert_service.run_alert_pass()

        assert report.counts["chassis"] == 1

    async def test_out_of_stock_part_gets_critical_alert_once(
        self, alert_service, async_db_session, make_part, notifier, fixed_now
    ):
        part = await make_part(quantity=0, minimum=5)

        first = await alert_service.run_alert_pass()
        second = await alert_service.run_alert_pass()

        assert first.counts["stock"] == 1
        assert first.created[0].severity == Severity.CRITICAL
        assert first.created[0].part_id == part.id
        assert first.created[0].created_at == fixed_now
        assert second.counts["total"] == 0
        assert await alert_count(async_db_session) == 1
        assert len(notifier.of_type(NotificationEventType.STOCK_OUT)) == 1

    async def test_low_stock_part_gets_high_alert(self, alert_service, make_part):
        await make_part(quantity=2, minimum=5)
        await make_part(quantity=6, minimum=5)

        report = await alert_service.run_alert_pass()

        assert report.counts["stock"] == 1
        assert report.created[0].severity == Severity.HIGH

    async def test_second_run_creates_nothing(self, alert_service, async_db_session, make_chassis, make_engine, make_part):
        await make_chassis(distance_km=5950.0)
        await make_engine(distance_km=2900.0)
        await make_part(quantity=1, minimum=3)

        first = await alert_service.run_alert_pass()
        second = await alert_service.run_alert_pass()

        assert first.counts == {"chassis": 1, "engine": 1, "stock": 1, "total": 3}
        assert second.counts["total"] == 0
        assert await alert_count(async_db_session) == 3

    async def test_handled_alert_allows_a_new_one(self, alert_service, make_chassis):
        await make_chassis(distance_km=5950.0)
        first = await alert_service.run_alert_pass()

        await alert_service.mark_handled(first.created[0].id, "alice")
        second = await alert_service.run_alert_pass()

        assert second.counts["chassis"] == 1
        assert second.created[0].id != first.created[0].id

    async def test_unit_failure_does_not_abort_pass(self, alert_service, make_chassis, make_part, monkeypatch):
        broken = await make_chassis(distance_km=5950.0)
        healthy = await make_chassis(distance_km=5990.0)
        await make_part(quantity=0, minimum=1)

        original = alert_service._maintenance_unit

        def flaky(kind, row):
            if row.id == broken.id:
                async def unit():
                    raise RuntimeError("corrupt odometer")
                return unit
            return original(kind, row)

        monkeypatch.setattr(alert_service, "_maintenance_unit", flaky)

        report = await alert_service.run_alert_pass()

        assert report.counts == {"chassis": 1, "engine": 0, "stock": 1, "total": 2}
        assert [a.chassis_id for a in report.created if a.chassis_id] == [healthy.id]
        assert len(report.failures) == 1
        assert report.failures[0].category == "chassis"
        assert report.failures[0].entity_id == broken.id
        assert "corrupt odometer" in report.failures[0].error


class TestMarkHandled:

    async def test_marks_alert_handled(self, alert_service, make_part, fixed_now):
        await make_part(quantity=0, minimum=1)
        report = await alert_service.run_alert_pass()

        alert = await alert_service.mark_handled(report.created[0].id, "alice")

        assert alert.handled is True
        assert alert.handled_by == "alice"
        assert alert.handled_at == fixed_now

    async def test_second_handling_is_rejected(self, alert_service, make_part):
        await make_part(quantity=0, minimum=1)
        report = await alert_service.run_alert_pass()
        await alert_service.mark_handled(report.created[0].id, "alice")

        with pytest.raises(AlertAlreadyHandledError):
            await alert_service.mark_handled(report.created[0].id, "bob")

    async def test_unknown_alert(self, alert_service):
        with pytest.raises(AlertNotFoundError):
            await alert_service.mark_handled(404, "alice")

    async def test_handler_is_required(self, alert_service):
        with pytest.raises(FleetValidationError) as exc_info:
            await alert_service.mark_handled(1, "")
        assert exc_info.value.field == "handled_by"

    async def test_open_alert_index_rejects_duplicates(self, async_db_session, make_chassis):
        chassis = await make_chassis()
        for _ in range(2):
            async_db_session.add(
                Alert(
                    alert_type=AlertType.MAINTENANCE,
                    severity=Severity.MEDIUM,
                    title="t",
                    message="m",
                    chassis_id=chassis.id,
                )
            )

        with pytest.raises(IntegrityError):
            await async_db_session.commit()
        await async_db_session.rollback()
