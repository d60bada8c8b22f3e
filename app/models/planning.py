from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Enum as SAEnum, Float, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base
from models.enums import MaintenanceType, Severity


class Planning(Base):
    """Forecast service date for one chassis or engine"""
    __tablename__ = "plannings"
    __table_args__ = (
        Index(
            "uq_planning_open_target",
            "is_engine",
            "target_id",
            unique=True,
            sqlite_where=text("completed = 0"),
            postgresql_where=text("NOT completed"),
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True
    )

    planning_type: Mapped[MaintenanceType] = mapped_column(
        SAEnum(MaintenanceType, native_enum=False, length=32)
    )

    title: Mapped[str] = mapped_column(
        String(200)
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )

    estimated_date: Mapped[date] = mapped_column(
        Date,
        index=True
    )

    is_engine: Mapped[bool] = mapped_column(
        Boolean
    )

    target_id: Mapped[int] = mapped_column(
        Integer
    )  # chassis.id or engines.id depending on is_engine

    target_distance_km: Mapped[float] = mapped_column(
        Float
    )

    severity: Mapped[Severity] = mapped_column(
        SAEnum(Severity, native_enum=False, length=16)
    )

    completed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        index=True
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.now
    )
