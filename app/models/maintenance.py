from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base
from models.enums import MaintenanceType


class Maintenance(Base):
    """A maintenance event performed on a chassis, an engine, or both"""
    __tablename__ = "maintenances"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True
    )

    maintenance_type: Mapped[MaintenanceType] = mapped_column(
        SAEnum(MaintenanceType, native_enum=False, length=32)
    )

    performed_at: Mapped[datetime] = mapped_column(
        DateTime
    )

    chassis_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("chassis.id"),
        nullable=True,
        index=True
    )

    engine_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("engines.id"),
        nullable=True,
        index=True
    )

    chassis_distance_km: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True
    )

    engine_distance_km: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True
    )

    technician: Mapped[str] = mapped_column(
        String(120)
    )

    labour_cost: Mapped[float] = mapped_column(
        Float,
        default=0.0
    )

    total_cost: Mapped[float] = mapped_column(
        Float,
        default=0.0
    )

    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )

    finalized: Mapped[bool] = mapped_column(
        Boolean,
        default=False
    )

    finalized_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True
    )

    parts_used: Mapped[List[MaintenancePart]] = relationship(
        back_populates="maintenance",
        lazy="selectin"
    )


class MaintenancePart(Base):
    """Parts consumed by a maintenance event, priced at consumption time"""
    __tablename__ = "maintenance_parts"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True
    )

    maintenance_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("maintenances.id"),
        index=True
    )

    part_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("parts.id")
    )

    quantity: Mapped[int] = mapped_column(
        Integer
    )

    unit_price: Mapped[float] = mapped_column(
        Float
    )

    maintenance: Mapped[Maintenance] = relationship(
        back_populates="parts_used"
    )
