from __future__ import annotations

from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, Enum as SAEnum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base
from models.enums import OperationalState

if TYPE_CHECKING:
    from models.engine import Engine


class Chassis(Base):
    """
    A chassis ("cycle") unit, tracked independently of the engine it carries.

    ``engine_id`` is the single authoritative side of the coupling; the
    unique constraint keeps an engine on at most one chassis.
    """
    __tablename__ = "chassis"
    __table_args__ = (
        CheckConstraint("distance_km >= 0", name="ck_chassis_distance_non_negative"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        index=True
    )

    serial_number: Mapped[str] = mapped_column(
        String(64),
        unique=True
    )

    model: Mapped[str] = mapped_column(
        String(120)
    )

    distance_km: Mapped[float] = mapped_column(
        Float,
        default=0.0
    )

    state: Mapped[OperationalState] = mapped_column(
        SAEnum(OperationalState, native_enum=False, length=32),
        default=OperationalState.AVAILABLE,
        index=True
    )

    state_notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )

    engine_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("engines.id"),
        unique=True,
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.now
    )

    engine: Mapped[Optional[Engine]] = relationship(
        foreign_keys=[engine_id]
    )
