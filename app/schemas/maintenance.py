from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.enums import AlertType, MaintenanceType, Severity


class AlertOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    alert_type: AlertType
    severity: Severity
    title: str
    message: str
    created_at: datetime
    handled: bool
    handled_by: Optional[str] = None
    handled_at: Optional[datetime] = None
    chassis_id: Optional[int] = None
    engine_id: Optional[int] = None
    part_id: Optional[int] = None


class PlanningOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    planning_type: MaintenanceType
    title: str
    description: Optional[str] = None
    estimated_date: date
    is_engine: bool
    target_id: int
    target_distance_km: float
    severity: Severity
    completed: bool
    completed_at: Optional[datetime] = None


class UnitFailureOut(BaseModel):
    category: str
    entity_id: int
    error: str


class PassReportOut(BaseModel):
    """Outcome of a batch pass: counts per category (plus "total") and per-unit failures."""
    counts: Dict[str, int]
    failures: List[UnitFailureOut] = []


class AlertPassOut(PassReportOut):
    created: List[AlertOut] = []


class PlanningPassOut(PassReportOut):
    created: List[PlanningOut] = []


class HandleAlertRequest(BaseModel):
    handled_by: str = Field(..., min_length=1, max_length=120)


class PartUsageIn(BaseModel):
    part_id: int
    quantity: int = Field(..., gt=0)
    unit_price: Optional[float] = Field(None, ge=0)


class MaintenanceRequest(BaseModel):
    maintenance_type: MaintenanceType
    technician: str = Field(..., min_length=1, max_length=120)
    chassis_id: Optional[int] = None
    engine_id: Optional[int] = None
    performed_at: Optional[datetime] = None
    labour_cost: float = Field(0.0, ge=0)
    notes: Optional[str] = None
    parts: List[PartUsageIn] = []


class MaintenancePartOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    part_id: int
    quantity: int
    unit_price: float


class MaintenanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    maintenance_type: MaintenanceType
    performed_at: datetime
    chassis_id: Optional[int] = None
    engine_id: Optional[int] = None
    chassis_distance_km: Optional[float] = None
    engine_distance_km: Optional[float] = None
    technician: str
    labour_cost: float
    total_cost: float
    notes: Optional[str] = None
    finalized: bool
    parts_used: List[MaintenancePartOut] = []


class FinalizeMaintenanceRequest(BaseModel):
    notes: Optional[str] = None


class InspectionRequest(BaseModel):
    chassis_id: int
    conforming: bool
    inspector: str = Field(..., min_length=1, max_length=120)
    inspected_at: Optional[datetime] = None
    comments: Optional[str] = None


class InspectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    chassis_id: int
    inspected_at: datetime
    conforming: bool
    inspector: str
    comments: Optional[str] = None
