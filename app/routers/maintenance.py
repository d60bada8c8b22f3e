from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.db import get_db
from schemas.maintenance import (
    AlertOut,
    AlertPassOut,
    FinalizeMaintenanceRequest,
    HandleAlertRequest,
    InspectionOut,
    InspectionRequest,
    MaintenanceOut,
    MaintenanceRequest,
    PlanningOut,
    PlanningPassOut,
)
from services.alert_service import AlertService
from services.maintenance_service import MaintenanceService
from services.planning_service import PlanningService

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.post("/alerts/run", response_model=AlertPassOut)
async def run_alert_pass(db: AsyncSession = Depends(get_db)):
    """Runs the alert pass once. Never triggered by a read."""
    return await AlertService(db).run_alert_pass()


@router.post("/alerts/{alert_id}/handle", response_model=AlertOut)
async def handle_alert(alert_id: int, req: HandleAlertRequest, db: AsyncSession = Depends(get_db)):
    return await AlertService(db).mark_handled(alert_id, req.handled_by)


@router.post("/plannings/run", response_model=PlanningPassOut)
async def run_schedule_pass(db: AsyncSession = Depends(get_db)):
    return await PlanningService(db).run_schedule_pass()


@router.post("/plannings/{planning_id}/complete", response_model=PlanningOut)
async def complete_planning(planning_id: int, db: AsyncSession = Depends(get_db)):
    return await PlanningService(db).mark_completed(planning_id)


@router.post("/events", response_model=MaintenanceOut, status_code=201)
async def open_maintenance(req: MaintenanceRequest, db: AsyncSession = Depends(get_db)):
    return await MaintenanceService(db).open_maintenance(
        req.maintenance_type,
        req.technician,
        chassis_id=req.chassis_id,
        engine_id=req.engine_id,
        performed_at=req.performed_at,
        labour_cost=req.labour_cost,
        notes=req.notes,
        parts=req.parts,
    )


@router.post("/events/{maintenance_id}/finalize", response_model=MaintenanceOut)
async def finalize_maintenance(
    maintenance_id: int,
    req: FinalizeMaintenanceRequest,
    db: AsyncSession = Depends(get_db),
):
    return await MaintenanceService(db).finalize_maintenance(maintenance_id, req.notes)


@router.post("/inspections", response_model=InspectionOut, status_code=201)
async def record_inspection(req: InspectionRequest, db: AsyncSession = Depends(get_db)):
    return await MaintenanceService(db).record_inspection(
        req.chassis_id,
        req.conforming,
        req.inspector,
        inspected_at=req.inspected_at,
        comments=req.comments,
    )
