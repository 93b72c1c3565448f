from typing import List

from pydantic import BaseModel, condecimal


DecimalValue = condecimal(max_digits=14, decimal_places=2)


class DemandBucket(BaseModel):
    period: str
    quantity: DecimalValue


class DemandHistoryResponse(BaseModel):
    item_id: int
    months: int
    buckets: List[DemandBucket]
