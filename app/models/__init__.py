# Alembic will detect models here
from .enums import OperationalState, EquipmentKind, AlertType, Severity, MaintenanceType
from .chassis import Chassis
from .engine import Engine
from .mounting_history import MountingHistory
from .usage import UsageRecord
from .part import Part
from .alert import Alert
from .planning import Planning
from .maintenance import Maintenance, MaintenancePart
from .inspection import Inspection
