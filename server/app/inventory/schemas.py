from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal, field_validator


DecimalValue = condecimal(max_digits=14, decimal_places=2)
MovementDirection = Literal["IN", "OUT"]
AdjustmentTransactionType = Literal["MANUAL_ADJUSTMENT", "PRODUCTION", "STOCK_TRANSFER", "RETURN"]


class InventoryBalanceResponse(BaseModel):
    item_id: int
    item_code: str
    item_name: str
    available_stock: DecimalValue
    reserved_stock: DecimalValue
    in_transit_stock: DecimalValue
    stock_status: str
    last_movement_at: Optional[datetime] = None
    last_movement_type: Optional[str] = None


class DeductionCreate(BaseModel):
    item_id: int
    quantity: DecimalValue = Field(..., gt=0)
    reference_type: str = Field(..., min_length=1, max_length=50)
    reference_id: Optional[int] = None
    notes: Optional[str] = None


class DeductionResponse(BaseModel):
    item_id: int
    available_stock: DecimalValue


class AdjustmentCreate(BaseModel):
    item_id: int
    direction: MovementDirection
    quantity: DecimalValue = Field(..., gt=0)
    reason: str
    transaction_type: AdjustmentTransactionType = "MANUAL_ADJUSTMENT"
    reference_type: Optional[str] = "Adjustment"
    reference_id: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def reason_required(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Reason is required for inventory adjustment.")
        return value.strip()


class MovementResponse(BaseModel):
    id: int
    item_id: int
    movement_type: MovementDirection
    transaction_type: str
    quantity: DecimalValue
    balance_after: DecimalValue
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    created_by_user_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
