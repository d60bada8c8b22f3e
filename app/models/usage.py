from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import CheckConstraint, Date, DateTime, Float, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


class UsageRecord(Base):
    """Append-only operating session of a chassis (track day, test session)"""
    __tablename__ = "usage_records"
    __table_args__ = (
        CheckConstraint("distance_km >= 0", name="ck_usage_distance_non_negative"),
        CheckConstraint("laps >= 0", name="ck_usage_laps_non_negative"),
        Index("ix_usage_chassis_date", "chassis_id", "session_date"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True
    )

    chassis_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("chassis.id")
    )

    session_date: Mapped[date] = mapped_column(
        Date
    )

    laps: Mapped[int] = mapped_column(
        Integer,
        default=0
    )

    lap_length_m: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True
    )

    distance_km: Mapped[float] = mapped_column(
        Float
    )

    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.now
    )
