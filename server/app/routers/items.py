from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.auth import get_current_user, require_action
from app.catalog import schemas
from app.catalog.service import create_item, get_item, list_items
from app.db import get_db, unit_of_work
from app.models import User
from app.roles import Action


router = APIRouter(prefix="/api/items", tags=["items"], dependencies=[Depends(get_current_user)])


@router.get("", response_model=List[schemas.ItemResponse])
def list_items_endpoint(search: Optional[str] = None, db: Session = Depends(get_db)):
    return list_items(db, search)


@router.get("/{item_id}", response_model=schemas.ItemResponse)
def get_item_endpoint(item_id: int, db: Session = Depends(get_db)):
    return get_item(db, item_id)


@router.post("", response_model=schemas.ItemResponse, status_code=status.HTTP_201_CREATED)
def create_item_endpoint(
    payload: schemas.ItemCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_action(Action.CREATE_ITEM)),
):
    with unit_of_work(db):
        item = create_item(db, payload.model_dump())
    db.refresh(item)
    return item
