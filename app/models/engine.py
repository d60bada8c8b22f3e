from __future__ import annotations

from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, Enum as SAEnum, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base
from models.enums import OperationalState

if TYPE_CHECKING:
    from models.chassis import Chassis


class Engine(Base):
    """An interchangeable engine unit"""
    __tablename__ = "engines"
    __table_args__ = (
        CheckConstraint("distance_km >= 0", name="ck_engine_distance_non_negative"),
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

    family: Mapped[str] = mapped_column(
        String(120)
    )  # engine type, e.g. 2T-125

    displacement_cc: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True
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

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.now
    )

    # Derived from Chassis.engine_id, never written from this side
    host_chassis: Mapped[Optional[Chassis]] = relationship(
        "Chassis",
        primaryjoin="Engine.id == foreign(Chassis.engine_id)",
        viewonly=True,
        uselist=False
    )
