"""
Integration tests for EquipmentService: state changes, distance accrual and
remaining-distance projections.
"""

from datetime import date

import pytest

from core.notifications import NotificationEventType
from models import Engine, OperationalState
from models.enums import EquipmentKind
from services.exceptions import ChassisNotFoundError, EngineNotFoundError, FleetValidationError
from services.thresholds import Urgency


class TestChangeState:

    async def test_changes_chassis_state_and_notes(self, equipment_service, make_chassis, notifier):
        chassis = await make_chassis()

        out = await equipment_service.change_state(
            EquipmentKind.CHASSIS, chassis.id, OperationalState.UNAVAILABLE, "Loaned to the academy"
        )

        assert out.state == OperationalState.UNAVAILABLE
        assert out.state_notes == "Loaned to the academy"
        event = notifier.of_type(NotificationEventType.STATE_CHANGED)[0]
        assert event.payload["previous_state"] == "AVAILABLE"
        assert event.payload["state"] == "UNAVAILABLE"

    async def test_engine_output_reports_host(self, equipment_service, coupling_service, make_chassis, make_engine):
        chassis = await make_chassis()
        engine = await make_engine()
        await coupling_service.mount(chassis.id, engine.id, "alice")

        out = await equipment_service.change_state("engine", engine.id, OperationalState.TO_INSPECT)

        assert out.mounted_on == chassis.id
        assert out.state == OperationalState.TO_INSPECT

    async def test_unknown_units(self, equipment_service):
        with pytest.raises(ChassisNotFoundError):
            await equipment_service.change_state(EquipmentKind.CHASSIS, 99, OperationalState.AVAILABLE)
        with pytest.raises(EngineNotFoundError):
            await equipment_service.change_state(EquipmentKind.ENGINE, 99, OperationalState.AVAILABLE)


class TestRecordUsage:

    async def test_accrues_on_chassis_and_mounted_engine(
        self, equipment_service, coupling_service, async_db_session, make_chassis, make_engine
    ):
        chassis = await make_chassis(distance_km=1000.0)
        engine = await make_engine(distance_km=200.0)
        await coupling_service.mount(chassis.id, engine.id, "alice")

        out = await equipment_service.record_usage(chassis.id, date(2026, 3, 14), laps=10, distance_km=37.0)

        assert out.chassis_distance_km == 1037.0
        assert out.engine_id == engine.id
        assert out.engine_distance_km == 237.0
        await async_db_session.refresh(engine)
        assert engine.distance_km == 237.0

    async def test_without_engine_only_chassis_accrues(self, equipment_service, make_chassis):
        chassis = await make_chassis(distance_km=10.0)

        out = await equipment_service.record_usage(chassis.id, date(2026, 3, 14), distance_km=5.0)

        assert out.chassis_distance_km == 15.0
        assert out.engine_id is None
        assert out.engine_distance_km is None

    async def test_distance_from_laps_and_lap_length(self, equipment_service, make_chassis):
        chassis = await make_chassis()

        out = await equipment_service.record_usage(chassis.id, date(2026, 3, 14), laps=12, lap_length_m=3700.0)

        assert out.distance_km == pytest.approx(44.4)
        assert out.chassis_distance_km == pytest.approx(44.4)

    @pytest.mark.parametrize(
        "kwargs,field",
        [
            ({"distance_km": -1.0}, "distance_km"),
            ({"laps": -2, "distance_km": 1.0}, "laps"),
            ({}, "distance_km"),
            ({"laps": 3, "lap_length_m": 0.0}, "lap_length_m"),
        ],
    )
    async def test_rejects_malformed_input(self, equipment_service, make_chassis, kwargs, field):
        chassis = await make_chassis()

        with pytest.raises(FleetValidationError) as exc_info:
            await equipment_service.record_usage(chassis.id, date(2026, 3, 14), **kwargs)

        assert exc_info.value.field == field

    async def test_unknown_chassis(self, equipment_service):
        with pytest.raises(ChassisNotFoundError):
            await equipment_service.record_usage(42, date(2026, 3, 14), distance_km=1.0)


class TestDistanceEdits:

    async def test_odometer_moves_forward_and_propagates(
        self, equipment_service, coupling_service, async_db_session, make_chassis, make_engine
    ):
        chassis = await make_chassis(distance_km=100.0)
        engine = await make_engine(distance_km=40.0)
        await coupling_service.mount(chassis.id, engine.id, "alice")

        out = await equipment_service.update_odometer(chassis.id, 160.0)

        assert out.distance_km == 160.0
        await async_db_session.refresh(engine)
        assert engine.distance_km == 100.0

    async def test_odometer_cannot_go_backwards(self, equipment_service, make_chassis):
        chassis = await make_chassis(distance_km=100.0)

        with pytest.raises(FleetValidationError):
            await equipment_service.update_odometer(chassis.id, 99.0)

    async def test_correction_may_decrease_and_is_not_propagated(
        self, equipment_service, coupling_service, async_db_session, make_chassis, make_engine
    ):
        chassis = await make_chassis(distance_km=500.0)
        engine = await make_engine(distance_km=300.0)
        await coupling_service.mount(chassis.id, engine.id, "alice")

        out = await equipment_service.correct_distance(EquipmentKind.CHASSIS, chassis.id, 450.0)

        assert out.distance_km == 450.0
        await async_db_session.refresh(engine)
        assert engine.distance_km == 300.0

    async def test_correction_rejects_negative(self, equipment_service, make_engine):
        engine = await make_engine()

        with pytest.raises(FleetValidationError):
            await equipment_service.correct_distance(EquipmentKind.ENGINE, engine.id, -5.0)


class TestProjections:

    async def test_remaining_distance(self, equipment_service, make_chassis):
        chassis = await make_chassis(distance_km=5850.0)

        out = await equipment_service.remaining_distance(EquipmentKind.CHASSIS, chassis.id)

        assert out.next_service_km == 6000.0
        assert out.remaining_km == 150.0
        assert out.interval_km == 6000.0
        assert out.urgency == Urgency.DUE_SOON
        assert out.overdue is False

    async def test_list_remaining_most_urgent_first(self, equipment_service, make_engine):
        relaxed = await make_engine(distance_km=100.0)
        due = await make_engine(distance_km=3000.0)
        soon = await make_engine(distance_km=2950.0)
        await make_engine(distance_km=2999.0, state=OperationalState.OUT_OF_SERVICE)

        out = await equipment_service.list_remaining(EquipmentKind.ENGINE)

        assert [p.id for p in out] == [due.id, soon.id, relaxed.id]
        assert out[0].overdue is True

    async def test_unknown_unit(self, equipment_service):
        with pytest.raises(EngineNotFoundError):
            await equipment_service.remaining_distance(EquipmentKind.ENGINE, 7)


class TestReadiness:

    async def test_ready_with_available_engine(self, equipment_service, coupling_service, make_chassis, make_engine):
        chassis = await make_chassis(distance_km=100.0)
        engine = await make_engine(distance_km=100.0)
        await coupling_service.mount(chassis.id, engine.id, "alice")

        out = await equipment_service.readiness(chassis.id)

        assert out.ready is True
        assert out.reason is None
        assert out.warning is None
        assert out.engine.id == engine.id

    async def test_not_ready_without_engine(self, equipment_service, make_chassis):
        chassis = await make_chassis()

        out = await equipment_service.readiness(chassis.id)

        assert out.ready is False
        assert out.reason == "No engine mounted"

    async def test_not_ready_when_engine_overdue(self, equipment_service, coupling_service, make_chassis, make_engine):
        chassis = await make_chassis(distance_km=100.0)
        engine = await make_engine(distance_km=3000.0)
        await coupling_service.mount(chassis.id, engine.id, "alice")

        out = await equipment_service.readiness(chassis.id)

        assert out.ready is False
        assert out.reason == "Engine service overdue"

    async def test_ready_with_warning_when_due_soon(self, equipment_service, coupling_service, make_chassis, make_engine):
        chassis = await make_chassis(distance_km=5900.0)
        engine = await make_engine(distance_km=10.0)
        await coupling_service.mount(chassis.id, engine.id, "alice")

        out = await equipment_service.readiness(chassis.id)

        assert out.ready is True
        assert out.warning == "Chassis service due soon"

    async def test_not_ready_when_chassis_in_maintenance(self, equipment_service, make_chassis):
        chassis = await make_chassis(state=OperationalState.IN_MAINTENANCE)

        out = await equipment_service.readiness(chassis.id)

        assert out.ready is False
        assert out.reason == "Chassis is IN_MAINTENANCE"


def test_engine_wear_is_tracked_by_distance_only():
    """Every stored engine wear figure is one the services maintain"""
    columns = set(Engine.__table__.columns.keys())
    assert "distance_km" in columns
    assert "hours" not in columns
