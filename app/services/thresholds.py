"""
Maintenance threshold calculator.

Pure functions only: no I/O, no configuration lookups. Callers pass the
service interval and the near-threshold window they work with.
"""

import math
from enum import IntEnum
from typing import Optional

from models.enums import Severity


class Urgency(IntEnum):
    NONE = 0
    DUE_SOON = 1
    OVERDUE = 2


def _check(distance: float, interval: float) -> None:
    if interval <= 0:
        raise ValueError(f"service interval must be positive, got {interval}")
    if distance < 0:
        raise ValueError(f"cumulative distance cannot be negative, got {distance}")


def next_service_distance(distance: float, interval: float) -> float:
    """
    Distance at which the next service falls due.

    The first service is due at one full interval, so a brand new unit
    (distance 0) is not considered due.
    """
    _check(distance, interval)
    return max(1, math.ceil(distance / interval)) * interval


def remaining_distance(distance: float, interval: float) -> float:
    """Signed distance left before the next service point; <= 0 means due or overdue."""
    return next_service_distance(distance, interval) - distance


def is_overdue(remaining: float) -> bool:
    return remaining <= 0


def urgency_level(remaining: float, window: float) -> Urgency:
    if remaining <= 0:
        return Urgency.OVERDUE
    if remaining <= window:
        return Urgency.DUE_SOON
    return Urgency.NONE


def maintenance_severity(remaining: float, window: float) -> Optional[Severity]:
    """HIGH when overdue, MEDIUM inside the window, None when no alert is warranted."""
    level = urgency_level(remaining, window)
    if level is Urgency.OVERDUE:
        return Severity.HIGH
    if level is Urgency.DUE_SOON:
        return Severity.MEDIUM
    return None


def stock_severity(quantity: int, minimum: int) -> Optional[Severity]:
    """CRITICAL when out of stock, HIGH at or below the minimum."""
    if quantity <= 0:
        return Severity.CRITICAL
    if quantity <= minimum:
        return Severity.HIGH
    return None


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def due_message(remaining: float, unit: str = "km") -> str:
    if remaining <= 0:
        return "Service overdue"
    return f"Service due in {round_half_up(remaining)} {unit}"
