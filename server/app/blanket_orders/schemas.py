from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal, model_validator


DecimalValue = condecimal(max_digits=14, decimal_places=2)
BlanketOrderStatus = Literal["ACTIVE", "COMPLETED", "CANCELLED"]


class BlanketOrderLineCreate(BaseModel):
    item_id: int
    total_quantity: DecimalValue = Field(..., gt=0)
    unit_price: Optional[DecimalValue] = Field(default=None, ge=0)


class BlanketOrderCreate(BaseModel):
    order_number: str = Field(..., min_length=1, max_length=50)
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_code: Optional[str] = None
    order_date: Optional[date] = None
    start_date: date
    end_date: date
    notes: Optional[str] = None
    lines: List[BlanketOrderLineCreate]

    @model_validator(mode="after")
    def validate_window_and_lines(self):
        if self.end_date < self.start_date:
            raise ValueError("End date must be on or after start date.")
        if not self.lines:
            raise ValueError("At least one order line is required.")
        return self


class BlanketOrderLineResponse(BaseModel):
    id: int
    blanket_order_id: int
    line_number: int
    item_id: int
    item_code: Optional[str] = None
    total_quantity: DecimalValue
    released_quantity: DecimalValue
    delivered_quantity: DecimalValue
    remaining_quantity: DecimalValue
    unit_price: Optional[DecimalValue] = None

    model_config = ConfigDict(from_attributes=True)


class AvailableLineResponse(BlanketOrderLineResponse):
    order_number: Optional[str] = None


class BlanketOrderResponse(BaseModel):
    id: int
    order_number: str
    customer_name: str
    customer_code: Optional[str] = None
    order_date: date
    start_date: date
    end_date: date
    status: BlanketOrderStatus
    notes: Optional[str] = None
    created_by_user_id: Optional[int] = None
    created_at: datetime
    lines: List[BlanketOrderLineResponse]

    model_config = ConfigDict(from_attributes=True)


class BlanketOrderStatusUpdate(BaseModel):
    status: BlanketOrderStatus


class BlanketOrderStatisticsResponse(BaseModel):
    order_id: int
    total_quantity: DecimalValue
    released_quantity: DecimalValue
    delivered_quantity: DecimalValue
    pending_quantity: DecimalValue
    completion_percentage: DecimalValue
