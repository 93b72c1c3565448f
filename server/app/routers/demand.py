from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.auth import get_current_user
from app.db import get_db
from app.demand import schemas
from app.demand.service import MAX_HISTORY_MONTHS, get_demand_history


router = APIRouter(prefix="/api/demand", tags=["demand"], dependencies=[Depends(get_current_user)])


@router.get("/{item_id}", response_model=schemas.DemandHistoryResponse)
def get_demand_history_endpoint(
    item_id: int,
    months: int = Query(12, ge=1, le=MAX_HISTORY_MONTHS),
    db: Session = Depends(get_db),
):
    return schemas.DemandHistoryResponse(
        item_id=item_id,
        months=months,
        buckets=get_demand_history(db, item_id, months),
    )
