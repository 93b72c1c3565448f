from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.auth import get_current_user, require_action
from app.blanket_orders import schemas
from app.blanket_orders.service import (
    create_order,
    get_order,
    get_order_statistics,
    list_available_lines,
    list_orders,
    update_order_status,
)
from app.db import get_db, unit_of_work
from app.models import User
from app.roles import Action


router = APIRouter(
    prefix="/api/blanket-orders",
    tags=["blanket-orders"],
    dependencies=[Depends(get_current_user)],
)


@router.get("", response_model=List[schemas.BlanketOrderResponse])
def list_orders_endpoint(
    status_filter: Optional[schemas.BlanketOrderStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    return list_orders(db, status_filter)


@router.post("", response_model=schemas.BlanketOrderResponse, status_code=status.HTTP_201_CREATED)
def create_order_endpoint(
    payload: schemas.BlanketOrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_action(Action.CREATE_ORDER)),
):
    header = payload.model_dump(exclude={"lines"})
    lines = [line.model_dump() for line in payload.lines]
    with unit_of_work(db):
        order = create_order(db, header, lines, user_id=current_user.id)
    return get_order(db, order.id)


@router.get("/lines/available", response_model=List[schemas.AvailableLineResponse])
def list_available_lines_endpoint(db: Session = Depends(get_db)):
    return list_available_lines(db)


@router.get("/{order_id}", response_model=schemas.BlanketOrderResponse)
def get_order_endpoint(order_id: int, db: Session = Depends(get_db)):
    return get_order(db, order_id)


@router.get("/{order_id}/statistics", response_model=schemas.BlanketOrderStatisticsResponse)
def get_order_statistics_endpoint(order_id: int, db: Session = Depends(get_db)):
    return get_order_statistics(db, order_id)


@router.patch("/{order_id}/status", response_model=schemas.BlanketOrderResponse)
def update_order_status_endpoint(
    order_id: int,
    payload: schemas.BlanketOrderStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_action(Action.UPDATE_ORDER_STATUS)),
):
    with unit_of_work(db):
        update_order_status(db, order_id, payload.status)
    return get_order(db, order_id)
