from enum import Enum


class OperationalState(str, Enum):
    """Operational state shared by chassis and engine units"""
    AVAILABLE = "AVAILABLE"
    IN_MAINTENANCE = "IN_MAINTENANCE"
    TO_INSPECT = "TO_INSPECT"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"
    UNAVAILABLE = "UNAVAILABLE"


class EquipmentKind(str, Enum):
    CHASSIS = "chassis"
    ENGINE = "engine"


class AlertType(str, Enum):
    MAINTENANCE = "MAINTENANCE"
    STOCK = "STOCK"
    INSPECTION = "INSPECTION"
    OTHER = "OTHER"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class MaintenanceType(str, Enum):
    REGULAR_SERVICE = "REGULAR_SERVICE"
    ENGINE_OVERHAUL = "ENGINE_OVERHAUL"
    REPAIR = "REPAIR"
    TIRE_CHANGE = "TIRE_CHANGE"
    OTHER = "OTHER"
