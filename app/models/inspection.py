from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


class Inspection(Base):
    """Daily pre-session inspection of a chassis"""
    __tablename__ = "inspections"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True
    )

    chassis_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("chassis.id"),
        index=True
    )

    inspected_at: Mapped[datetime] = mapped_column(
        DateTime,
        index=True
    )

    conforming: Mapped[bool] = mapped_column(
        Boolean
    )

    inspector: Mapped[str] = mapped_column(
        String(120)
    )

    comments: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )
