from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal


DecimalValue = condecimal(max_digits=14, decimal_places=2)


class ItemCreate(BaseModel):
    item_code: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    uom: str = "EA"
    min_stock: DecimalValue = Field(default=Decimal("0"), ge=0)
    max_stock: DecimalValue = Field(default=Decimal("0"), ge=0)
    safety_stock: DecimalValue = Field(default=Decimal("0"), ge=0)


class ItemResponse(BaseModel):
    id: int
    item_code: str
    name: str
    description: Optional[str] = None
    uom: str
    min_stock: DecimalValue
    max_stock: DecimalValue
    safety_stock: DecimalValue
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
