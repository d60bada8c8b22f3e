from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.enums import EquipmentKind, OperationalState


class MountRequest(BaseModel):
    engine_id: int
    technician: str = Field(..., min_length=1, max_length=120)
    mounted_at: Optional[datetime] = None
    notes: Optional[str] = None


class DismountRequest(BaseModel):
    technician: str = Field(..., min_length=1, max_length=120)
    dismounted_at: Optional[datetime] = None
    notes: Optional[str] = None


class StateChangeRequest(BaseModel):
    state: OperationalState
    notes: Optional[str] = None


class UsageRequest(BaseModel):
    session_date: date
    laps: int = Field(0, ge=0)
    distance_km: Optional[float] = Field(None, ge=0, description="Distance covered in km")
    lap_length_m: Optional[float] = Field(None, gt=0, description="Track lap length in meters")
    notes: Optional[str] = None

    @model_validator(mode="after")
    def distance_or_lap_length(self):
        if self.distance_km is None and self.lap_length_m is None:
            raise ValueError("distance_km or lap_length_m must be provided")
        return self


class OdometerRequest(BaseModel):
    distance_km: float = Field(..., ge=0)


class MountingHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    chassis_id: int
    engine_id: int
    started_at: datetime
    chassis_start_km: float
    engine_start_km: float
    technician: str
    notes: Optional[str] = None
    ended_at: Optional[datetime] = None
    chassis_end_km: Optional[float] = None
    engine_end_km: Optional[float] = None


class UnitOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    serial_number: str
    distance_km: float
    state: OperationalState
    state_notes: Optional[str] = None


class ChassisOut(UnitOut):
    model: str
    engine_id: Optional[int] = None


class EngineOut(UnitOut):
    family: str
    mounted_on: Optional[int] = None


class UsageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    chassis_id: int
    session_date: date
    laps: int
    distance_km: float
    chassis_distance_km: float
    engine_id: Optional[int] = None
    engine_distance_km: Optional[float] = None


class RemainingDistanceOut(BaseModel):
    kind: EquipmentKind
    id: int
    serial_number: str
    distance_km: float
    interval_km: float
    next_service_km: float
    remaining_km: float
    overdue: bool
    urgency: int


class ReadinessOut(BaseModel):
    chassis_id: int
    ready: bool
    reason: Optional[str] = None
    warning: Optional[str] = None
    chassis: Optional[RemainingDistanceOut] = None
    engine: Optional[RemainingDistanceOut] = None
