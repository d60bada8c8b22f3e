"""
Maintenance configuration shared by the threshold, alert and schedule layers.

Values are externally supplied (environment or explicit construction) and
injected into services; nothing reads them from module globals.
"""

import os
from functools import lru_cache
from typing import Any, Dict, Mapping

from pydantic import BaseModel, ConfigDict, Field


ENV_KEYS: Dict[str, str] = {
    "chassis_interval": "FLEET_CHASSIS_INTERVAL",
    "engine_interval": "FLEET_ENGINE_INTERVAL",
    "alert_window": "FLEET_ALERT_WINDOW",
    "schedule_window": "FLEET_SCHEDULE_WINDOW",
    "engine_default_horizon_days": "FLEET_ENGINE_DEFAULT_HORIZON_DAYS",
    "no_data_default_horizon_days": "FLEET_NO_DATA_DEFAULT_HORIZON_DAYS",
}


class MaintenanceConfig(BaseModel):
    """Service intervals, severity windows and fallback horizons."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    chassis_interval: float = Field(6000, gt=0, description="Chassis service interval (km)")
    engine_interval: float = Field(3000, gt=0, description="Engine service interval (km)")
    alert_window: float = Field(200, ge=0, description="Near-threshold window of the alert pass (km)")
    schedule_window: float = Field(800, ge=0, description="Near-threshold window of the schedule pass (km)")
    engine_default_horizon_days: int = Field(7, ge=1)
    no_data_default_horizon_days: int = Field(14, ge=1)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "MaintenanceConfig":
        return cls(**{k: v for k, v in values.items() if v is not None})

    @classmethod
    def from_env(cls) -> "MaintenanceConfig":
        """Build a config from FLEET_* environment variables, keeping defaults for unset keys."""
        return cls.from_mapping({key: os.getenv(env) for key, env in ENV_KEYS.items()})

    def interval_for(self, kind: str) -> float:
        return self.engine_interval if kind == "engine" else self.chassis_interval


@lru_cache
def get_maintenance_config() -> MaintenanceConfig:
    """Process-wide configuration read once from the environment."""
    return MaintenanceConfig.from_env()
