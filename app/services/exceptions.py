from typing import Optional

from core.retry import NonRetryableError


class FleetDomainError(NonRetryableError):
    """Base class for all fleet domain errors. Never retried."""
    code = "fleet_error"
    status_code = 400


class ChassisNotFoundError(FleetDomainError):
    """Raised when the referenced chassis does not exist."""
    code = "chassis_not_found"
    status_code = 404


class EngineNotFoundError(FleetDomainError):
    """Raised when the referenced engine does not exist."""
    code = "engine_not_found"
    status_code = 404


class EngineAlreadyMountedError(FleetDomainError):
    """Raised when mounting an engine that already has an active coupling."""
    code = "engine_already_mounted"
    status_code = 409


class EngineUnavailableError(FleetDomainError):
    """Raised when the engine's operational state is not AVAILABLE."""
    code = "engine_unavailable"
    status_code = 409


class ChassisAlreadyHasEngineError(FleetDomainError):
    """Raised when mounting on a chassis that already carries an engine."""
    code = "chassis_already_has_engine"
    status_code = 409


class NoEngineMountedError(FleetDomainError):
    """Raised when dismounting from a chassis that carries no engine."""
    code = "no_engine_mounted"
    status_code = 409


class MountingHistoryMissingError(FleetDomainError):
    """Raised when a chassis references an engine but no open mounting record matches."""
    code = "mounting_history_inconsistent"
    status_code = 409


class AlertNotFoundError(FleetDomainError):
    code = "alert_not_found"
    status_code = 404


class AlertAlreadyHandledError(FleetDomainError):
    """Raised when marking an alert that was already handled."""
    code = "alert_already_handled"
    status_code = 409


class PlanningNotFoundError(FleetDomainError):
    code = "planning_not_found"
    status_code = 404


class PlanningAlreadyCompletedError(FleetDomainError):
    code = "planning_already_completed"
    status_code = 409


class PartNotFoundError(FleetDomainError):
    code = "part_not_found"
    status_code = 404


class InsufficientStockError(FleetDomainError):
    """Raised when a stock movement would leave a negative quantity."""
    code = "insufficient_stock"
    status_code = 409


class MaintenanceNotFoundError(FleetDomainError):
    code = "maintenance_not_found"
    status_code = 404


class MaintenanceAlreadyFinalizedError(FleetDomainError):
    code = "maintenance_already_finalized"
    status_code = 409


class FleetValidationError(FleetDomainError):
    """Raised on malformed input, before any mutation. Carries the offending field."""
    code = "validation_error"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConcurrentModificationError(FleetDomainError):
    """Raised when a transaction kept conflicting with concurrent writers until retries ran out."""
    code = "concurrent_modification"
    status_code = 503


class DatabaseQueryError(FleetDomainError):
    """Raised when a database query fails or returns unexpected results."""
    code = "database_error"
    status_code = 500
