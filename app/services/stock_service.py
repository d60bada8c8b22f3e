import logging
from typing import Optional

from core.db import atomic
from core.metrics import track_performance
from core.notifications import NotificationEventType
from models import Part, Severity
from schemas.parts import PartOut
from services import queries
from services.alert_service import create_stock_alert_if_absent
from services.base import TransactionalService
from services.exceptions import FleetValidationError, InsufficientStockError, PartNotFoundError

logger = logging.getLogger(__name__)


class StockService(TransactionalService):

    @track_performance(service_name="StockService")
    async def adjust_stock(self, part_id: int, delta: int, notes: Optional[str] = None) -> PartOut:
        """
        Applies a signed stock movement.

        Rejects a movement that would leave a negative quantity. When the new
        quantity is at or below the part's minimum, a STOCK alert is raised in
        the same transaction unless one is already open.
        """
        if delta == 0:
            raise FleetValidationError("Stock movement cannot be zero.", "delta")

        async def _adjust():
            async with self.locks.hold(("part", part_id)):
                async with atomic(self.db):
                    part = await queries.get_for_update(self.db, Part, part_id)
                    if part is None:
                        raise PartNotFoundError(f"Part {part_id} not found.")
                    quantity = part.quantity_in_stock + delta
                    if quantity < 0:
                        raise InsufficientStockError(
                            f"Only {part.quantity_in_stock} x {part.reference} in stock, cannot withdraw {-delta}."
                        )
                    part.quantity_in_stock = quantity
                    alert = await create_stock_alert_if_absent(
                        self.db, part.id, part.name, quantity, part.minimum_stock, self.now()
                    )
                    await self.db.flush()
                    return PartOut.model_validate(part), alert

        out, alert = await self.run_serialized(_adjust)

        logger.info(
            f"Stock of part {out.reference} adjusted by {delta:+d} to {out.quantity_in_stock}",
            extra={"part_id": part_id, "delta": delta, "quantity": out.quantity_in_stock, "notes": notes},
        )
        if alert is not None:
            self.emit(
                NotificationEventType.STOCK_OUT if alert.severity == Severity.CRITICAL else NotificationEventType.STOCK_LOW,
                alert.title,
                alert_id=alert.id,
                part_id=part_id,
                quantity=out.quantity_in_stock,
            )
        return out
