from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


class MountingHistory(Base):
    """
    One coupling of an engine on a chassis.

    Open while ``ended_at`` is NULL; closed (never deleted) on dismount.
    The partial unique indexes allow a single open row per chassis and
    per engine.
    """
    __tablename__ = "mounting_history"
    __table_args__ = (
        Index(
            "uq_mounting_open_chassis",
            "chassis_id",
            unique=True,
            sqlite_where=text("ended_at IS NULL"),
            postgresql_where=text("ended_at IS NULL"),
        ),
        Index(
            "uq_mounting_open_engine",
            "engine_id",
            unique=True,
            sqlite_where=text("ended_at IS NULL"),
            postgresql_where=text("ended_at IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True
    )

    chassis_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("chassis.id"),
        index=True
    )

    engine_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("engines.id"),
        index=True
    )

    started_at: Mapped[datetime] = mapped_column(
        DateTime
    )

    chassis_start_km: Mapped[float] = mapped_column(
        Float
    )

    engine_start_km: Mapped[float] = mapped_column(
        Float
    )

    technician: Mapped[str] = mapped_column(
        String(120)
    )

    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )

    ended_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )

    chassis_end_km: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True
    )

    engine_end_km: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True
    )

    @property
    def is_active(self) -> bool:
        return self.ended_at is None
