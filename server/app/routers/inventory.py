from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.auth import get_current_user, require_action
from app.db import get_db, unit_of_work
from app.inventory import schemas
from app.inventory.service import adjust, deduct, get_balance, list_inventory, list_movements, stock_status
from app.models import Inventory, User
from app.roles import Action


router = APIRouter(prefix="/api/inventory", tags=["inventory"], dependencies=[Depends(get_current_user)])


def _to_balance_response(record: Inventory) -> schemas.InventoryBalanceResponse:
    return schemas.InventoryBalanceResponse(
        item_id=record.item_id,
        item_code=record.item.item_code,
        item_name=record.item.name,
        available_stock=record.available_stock,
        reserved_stock=record.reserved_stock,
        in_transit_stock=record.in_transit_stock,
        stock_status=stock_status(record.item, record.available_stock),
        last_movement_at=record.last_movement_at,
        last_movement_type=record.last_movement_type,
    )


@router.get("", response_model=List[schemas.InventoryBalanceResponse])
def list_inventory_endpoint(db: Session = Depends(get_db)):
    return [_to_balance_response(record) for record in list_inventory(db)]


@router.get("/movements", response_model=List[schemas.MovementResponse])
def list_movements_endpoint(
    item_id: Optional[int] = None,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    return list_movements(db, item_id=item_id, limit=limit)


@router.post("/deductions", response_model=schemas.DeductionResponse, status_code=status.HTTP_201_CREATED)
def create_deduction(
    payload: schemas.DeductionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_action(Action.DEDUCT_INVENTORY)),
):
    with unit_of_work(db):
        new_stock = deduct(
            db,
            item_id=payload.item_id,
            qty=payload.quantity,
            reference_type=payload.reference_type,
            reference_id=payload.reference_id,
            notes=payload.notes,
            user_id=current_user.id,
        )
    return schemas.DeductionResponse(item_id=payload.item_id, available_stock=new_stock)


@router.post("/adjustments", response_model=schemas.MovementResponse, status_code=status.HTTP_201_CREATED)
def create_adjustment(
    payload: schemas.AdjustmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_action(Action.ADJUST_INVENTORY)),
):
    with unit_of_work(db):
        movement = adjust(
            db,
            item_id=payload.item_id,
            direction=payload.direction,
            qty=payload.quantity,
            reason=payload.reason,
            reference_type=payload.reference_type,
            reference_id=payload.reference_id,
            transaction_type=payload.transaction_type,
            notes=payload.notes,
            user_id=current_user.id,
        )
    db.refresh(movement)
    return movement


@router.get("/{item_id}", response_model=schemas.InventoryBalanceResponse)
def get_balance_endpoint(item_id: int, db: Session = Depends(get_db)):
    return _to_balance_response(get_balance(db, item_id))
