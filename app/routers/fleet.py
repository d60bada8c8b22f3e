from typing import List, Union

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.db import get_db
from models.enums import EquipmentKind
from schemas.fleet import (
    ChassisOut,
    DismountRequest,
    EngineOut,
    MountingHistoryOut,
    MountRequest,
    OdometerRequest,
    ReadinessOut,
    RemainingDistanceOut,
    StateChangeRequest,
    UsageOut,
    UsageRequest,
)
from services.coupling_service import CouplingService
from services.equipment_service import EquipmentService

router = APIRouter(prefix="/fleet", tags=["fleet"])


@router.post("/chassis/{chassis_id}/mount", response_model=MountingHistoryOut)
async def mount_engine(chassis_id: int, req: MountRequest, db: AsyncSession = Depends(get_db)):
    return await CouplingService(db).mount(
        chassis_id, req.engine_id, req.technician, mounted_at=req.mounted_at, notes=req.notes
    )


@router.post("/chassis/{chassis_id}/dismount", response_model=MountingHistoryOut)
async def dismount_engine(chassis_id: int, req: DismountRequest, db: AsyncSession = Depends(get_db)):
    return await CouplingService(db).dismount(
        chassis_id, req.technician, dismounted_at=req.dismounted_at, notes=req.notes
    )


@router.post("/{kind}/{unit_id}/state", response_model=Union[ChassisOut, EngineOut])
async def change_state(kind: EquipmentKind, unit_id: int, req: StateChangeRequest, db: AsyncSession = Depends(get_db)):
    return await EquipmentService(db).change_state(kind, unit_id, req.state, req.notes)


@router.post("/chassis/{chassis_id}/usage", response_model=UsageOut)
async def record_usage(chassis_id: int, req: UsageRequest, db: AsyncSession = Depends(get_db)):
    return await EquipmentService(db).record_usage(
        chassis_id,
        req.session_date,
        laps=req.laps,
        distance_km=req.distance_km,
        lap_length_m=req.lap_length_m,
        notes=req.notes,
    )


@router.post("/chassis/{chassis_id}/odometer", response_model=ChassisOut)
async def update_odometer(chassis_id: int, req: OdometerRequest, db: AsyncSession = Depends(get_db)):
    return await EquipmentService(db).update_odometer(chassis_id, req.distance_km)


@router.get("/{kind}/remaining", response_model=List[RemainingDistanceOut])
async def list_remaining(kind: EquipmentKind, db: AsyncSession = Depends(get_db)):
    """Remaining distance for every unit in service, most urgent first."""
    return await EquipmentService(db).list_remaining(kind)


@router.get("/{kind}/{unit_id}/remaining", response_model=RemainingDistanceOut)
async def remaining_distance(kind: EquipmentKind, unit_id: int, db: AsyncSession = Depends(get_db)):
    return await EquipmentService(db).remaining_distance(kind, unit_id)


@router.get("/chassis/{chassis_id}/readiness", response_model=ReadinessOut)
async def readiness(chassis_id: int, db: AsyncSession = Depends(get_db)):
    return await EquipmentService(db).readiness(chassis_id)
