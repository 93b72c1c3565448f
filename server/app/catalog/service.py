from decimal import Decimal
import logging
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from app.errors import NotFound, ValidationError
from app.inventory.service import ensure_inventory, to_quantity
from app.models import Item


logger = logging.getLogger(__name__)


def get_item(db: Session, item_id: int) -> Item:
    item = db.query(Item).filter(Item.id == item_id).first()
    if not item:
        raise NotFound(f"Item not found: {item_id}")
    return item


def list_items(db: Session, search: Optional[str] = None) -> Sequence[Item]:
    query = db.query(Item)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter((Item.name.ilike(like)) | (Item.item_code.ilike(like)))
    return query.order_by(Item.item_code).all()


def create_item(db: Session, payload: dict) -> Item:
    item_code = (payload.get("item_code") or "").strip()
    if not item_code:
        raise ValidationError("Item code is required.")
    if db.query(Item.id).filter(Item.item_code == item_code).scalar() is not None:
        raise ValidationError(f"Item code '{item_code}' already exists.")

    min_stock = to_quantity(payload.get("min_stock"))
    max_stock = to_quantity(payload.get("max_stock"))
    safety_stock = to_quantity(payload.get("safety_stock"))
    if max_stock > 0 and min_stock > max_stock:
        raise ValidationError("Minimum stock cannot exceed maximum stock.")
    if safety_stock > min_stock and min_stock > 0:
        raise ValidationError("Safety stock cannot exceed minimum stock.")

    item = Item(
        item_code=item_code,
        name=payload["name"],
        description=payload.get("description"),
        uom=payload.get("uom") or "EA",
        min_stock=min_stock,
        max_stock=max_stock,
        safety_stock=safety_stock,
    )
    db.add(item)
    db.flush()
    ensure_inventory(db, item.id)
    logger.info("Item created: id=%s code=%s", item.id, item.item_code)
    return item


def get_stock_thresholds(db: Session, item_id: int) -> dict[str, Decimal]:
    item = get_item(db, item_id)
    return {
        "min_stock": to_quantity(item.min_stock),
        "max_stock": to_quantity(item.max_stock),
        "safety_stock": to_quantity(item.safety_stock),
    }
