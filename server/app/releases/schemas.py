from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal


DecimalValue = condecimal(max_digits=14, decimal_places=2)
ReleaseStatus = Literal["PENDING", "SHIPPED", "DELIVERED"]


class ReleaseCreate(BaseModel):
    order_line_id: int
    quantity: DecimalValue = Field(..., gt=0)
    scheduled_delivery_date: date
    notes: Optional[str] = None


class ReleaseStatusUpdate(BaseModel):
    status: ReleaseStatus


class ReleaseResponse(BaseModel):
    id: int
    release_number: str
    blanket_order_line_id: int
    blanket_order_id: Optional[int] = None
    item_id: Optional[int] = None
    quantity: DecimalValue
    status: ReleaseStatus
    scheduled_delivery_date: date
    shipped_at: Optional[datetime] = None
    actual_delivery_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_by_user_id: Optional[int] = None
    created_at: datetime
    allowed_transitions: List[ReleaseStatus] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
