from __future__ import annotations

from sqlalchemy import CheckConstraint, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


class Part(Base):
    __tablename__ = "parts"
    __table_args__ = (
        CheckConstraint("quantity_in_stock >= 0", name="ck_part_stock_non_negative"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True
    )

    reference: Mapped[str] = mapped_column(
        String(64),
        unique=True
    )

    name: Mapped[str] = mapped_column(
        String(200)
    )

    unit_price: Mapped[float] = mapped_column(
        Float,
        default=0.0
    )

    quantity_in_stock: Mapped[int] = mapped_column(
        Integer,
        default=0
    )

    minimum_stock: Mapped[int] = mapped_column(
        Integer,
        default=0
    )
