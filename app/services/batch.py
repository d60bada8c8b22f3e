"""
Per-unit evaluation for the alert and schedule passes.

A pass walks a snapshot of units and evaluates each one in its own short
transaction. A unit that fails is rolled back, recorded, and skipped; the
remaining units are still evaluated.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.prometheus_metrics import prometheus_collector
from schemas.maintenance import UnitFailureOut

logger = logging.getLogger(__name__)


class BatchPass:
    def __init__(self, db: AsyncSession, name: str, kind: str, categories: Iterable[str]):
        self.db = db
        self.name = name
        self.kind = kind
        self.created: List[Any] = []
        self.counts: Dict[str, int] = {category: 0 for category in categories}
        self.failures: List[UnitFailureOut] = []

    async def evaluate(
        self,
        category: str,
        entity_id: int,
        unit: Callable[[], Awaitable[Optional[Any]]],
    ) -> Optional[Any]:
        """
        Runs ``unit`` for one entity. ``unit`` returns the created record
        (already committed) or None when nothing had to be created.
        """
        try:
            record = await unit()
        except IntegrityError:
            # Another writer created the open record between our check and insert
            await self.db.rollback()
            logger.info(f"{self.name}: {category} {entity_id} already has an open {self.kind}, skipped")
            return None
        except Exception as e:
            await self.db.rollback()
            logger.error(
                f"{self.name}: evaluation failed for {category} {entity_id}: {e}",
                extra={"pass_name": self.name, "category": category, "entity_id": entity_id},
            )
            self.failures.append(UnitFailureOut(category=category, entity_id=entity_id, error=str(e)))
            return None

        if record is not None:
            self.created.append(record)
            self.counts[category] += 1
        return record

    def summary(self) -> Dict[str, Any]:
        counts = dict(self.counts)
        counts["total"] = sum(self.counts.values())

        for category, count in self.counts.items():
            prometheus_collector.record_generated(self.kind, category, count)
        prometheus_collector.record_unit_failures(self.name, len(self.failures))

        logger.info(
            f"{self.name} finished: {counts['total']} created, {len(self.failures)} failed",
            extra={"pass_name": self.name, "counts": counts, "failures": len(self.failures)},
        )
        return {"created": self.created, "counts": counts, "failures": self.failures}
