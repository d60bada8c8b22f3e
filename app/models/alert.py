from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, Enum as SAEnum, ForeignKey, Index, Integer, String, Text, text
)
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base
from models.enums import AlertType, Severity


def _open_alert_index(name: str, column: str) -> Index:
    # One unhandled alert per (target, type)
    return Index(
        name,
        column,
        "alert_type",
        unique=True,
        sqlite_where=text(f"{column} IS NOT NULL AND handled = 0"),
        postgresql_where=text(f"{column} IS NOT NULL AND NOT handled"),
    )


class Alert(Base):
    """
    Audit-trail alert. Never deleted; ``handled`` only moves False -> True.
    References at most one of chassis, engine or part.
    """
    __tablename__ = "alerts"
    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN chassis_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN engine_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN part_id IS NULL THEN 0 ELSE 1 END) <= 1",
            name="ck_alert_single_target",
        ),
        _open_alert_index("uq_alert_open_chassis", "chassis_id"),
        _open_alert_index("uq_alert_open_engine", "engine_id"),
        _open_alert_index("uq_alert_open_part", "part_id"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True
    )

    alert_type: Mapped[AlertType] = mapped_column(
        SAEnum(AlertType, native_enum=False, length=32),
        index=True
    )

    severity: Mapped[Severity] = mapped_column(
        SAEnum(Severity, native_enum=False, length=16)
    )

    title: Mapped[str] = mapped_column(
        String(200)
    )

    message: Mapped[str] = mapped_column(
        Text
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.now,
        index=True
    )

    handled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        index=True
    )

    handled_by: Mapped[Optional[str]] = mapped_column(
        String(120),
        nullable=True
    )

    handled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )

    chassis_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("chassis.id"),
        nullable=True
    )

    engine_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("engines.id"),
        nullable=True
    )

    part_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("parts.id"),
        nullable=True
    )
