from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.db import get_db
from schemas.parts import PartOut, StockAdjustRequest
from services.stock_service import StockService

router = APIRouter(prefix="/parts", tags=["parts"])


@router.post("/{part_id}/adjust", response_model=PartOut)
async def adjust_stock(part_id: int, req: StockAdjustRequest, db: AsyncSession = Depends(get_db)):
    """Signed stock movement: positive for an entry, negative for a withdrawal."""
    return await StockService(db).adjust_stock(part_id, req.delta, req.notes)
