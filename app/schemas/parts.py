from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StockAdjustRequest(BaseModel):
    delta: int = Field(..., description="Signed quantity: positive for an entry, negative for a withdrawal")
    notes: Optional[str] = None


class PartOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reference: str
    name: str
    unit_price: float
    quantity_in_stock: int
    minimum_stock: int
