"""
Creates a demo fleet: chassis, engines, a few couplings, usage sessions and parts.

Run from the ``app`` directory:  python -m scripts.seed_data
"""

import asyncio
import logging
import random
from datetime import date, datetime, timedelta

from core.db import AsyncSessionLocal, create_schema
from core.logging import setup_logging
from core.notifications import NullNotifier
from models import Chassis, Engine, OperationalState, Part
from services.coupling_service import CouplingService
from services.equipment_service import EquipmentService

logger = logging.getLogger(__name__)

PARTS = [
    ("FIL-HUILE", "Oil filter", 12.5, 10, 4),
    ("PLAQ-AV", "Front brake pads", 45.0, 6, 2),
    ("CHAINE-520", "Chain 520", 89.0, 2, 2),
    ("BOUGIE", "Spark plug", 9.9, 0, 5),
]


async def seed(rng: random.Random = None):
    rng = rng or random.Random(42)
    await create_schema()

    async with AsyncSessionLocal() as db:
        chassis = [
            Chassis(serial_number=f"YZF-{100 + i}", model="YZF-R 125", distance_km=float(rng.randint(1000, 5800)))
            for i in range(4)
        ] + [
            Chassis(
                serial_number=f"MT-{200 + i}",
                model="MT 125",
                distance_km=float(rng.randint(500, 4500)),
                state=OperationalState.AVAILABLE if i == 0 else OperationalState.IN_MAINTENANCE,
            )
            for i in range(2)
        ]
        engines = [
            Engine(
                serial_number=f"M{100 + i}",
                family="YZF-R" if i < 5 else "MT",
                displacement_cc=125,
                distance_km=float(rng.randint(500, 2900)),
                state=(
                    OperationalState.AVAILABLE if i < 6
                    else OperationalState.IN_MAINTENANCE if i == 6
                    else OperationalState.OUT_OF_SERVICE
                ),
            )
            for i in range(8)
        ]
        parts = [
            Part(reference=ref, name=name, unit_price=price, quantity_in_stock=qty, minimum_stock=minimum)
            for ref, name, price, qty, minimum in PARTS
        ]
        db.add_all(chassis + engines + parts)
        await db.commit()

        # Couplings and usage go through the services so history and distances stay consistent
        coupling = CouplingService(db, notifier=NullNotifier())
        equipment = EquipmentService(db, notifier=NullNotifier())
        mounted_at = datetime.now() - timedelta(days=30)
        for c, e in zip(chassis[:4], engines[:4]):
            await coupling.mount(c.id, e.id, "seed", mounted_at=mounted_at)

        for day in range(1, 29, 3):
            for c in chassis[:4]:
                await equipment.record_usage(
                    c.id,
                    date.today() - timedelta(days=day),
                    laps=rng.randint(8, 20),
                    lap_length_m=3700.0,
                )

    logger.info(f"Seeded {len(chassis)} chassis, {len(engines)} engines and {len(parts)} parts")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(seed())
