from datetime import date
from decimal import Decimal
import logging
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.errors import DuplicateOrderNumber, InvalidStatusTransition, NotFound, ValidationError
from app.inventory.service import require_quantity, to_quantity
from app.models import BlanketOrder, BlanketOrderLine, Item


logger = logging.getLogger(__name__)

ORDER_ACTIVE = "ACTIVE"
ORDER_COMPLETED = "COMPLETED"
ORDER_CANCELLED = "CANCELLED"
ORDER_STATUS_TRANSITIONS = {
    ORDER_ACTIVE: {ORDER_COMPLETED, ORDER_CANCELLED},
    ORDER_COMPLETED: set(),
    ORDER_CANCELLED: set(),
}


def _order_number_exists(db: Session, order_number: str) -> bool:
    return db.query(BlanketOrder.id).filter(BlanketOrder.order_number == order_number).scalar() is not None


def _validate_header(header: dict) -> None:
    if not (header.get("order_number") or "").strip():
        raise ValidationError("Order number is required.")
    if not (header.get("customer_name") or "").strip():
        raise ValidationError("Customer name is required.")
    start_date: Optional[date] = header.get("start_date")
    end_date: Optional[date] = header.get("end_date")
    if not start_date or not end_date:
        raise ValidationError("Order start and end dates are required.")
    if end_date < start_date:
        raise ValidationError("End date must be on or after start date.")


def _build_lines(db: Session, lines_payload: list[dict]) -> list[BlanketOrderLine]:
    if not lines_payload:
        raise ValidationError("At least one order line is required.")

    lines: list[BlanketOrderLine] = []
    for index, payload in enumerate(lines_payload, start=1):
        total_quantity = require_quantity(payload.get("total_quantity"), "Line quantity")
        item = db.query(Item).filter(Item.id == payload["item_id"]).first()
        if not item:
            raise ValidationError(f"Item not found: {payload['item_id']}")
        unit_price = payload.get("unit_price")
        lines.append(
            BlanketOrderLine(
                line_number=index,
                item_id=item.id,
                total_quantity=total_quantity,
                released_quantity=Decimal("0"),
                delivered_quantity=Decimal("0"),
                unit_price=to_quantity(unit_price) if unit_price is not None else None,
            )
        )
    return lines


def create_order(db: Session, header: dict, lines_payload: list[dict], *, user_id: Optional[int] = None) -> BlanketOrder:
    _validate_header(header)
    order_number = header["order_number"].strip()
    lines = _build_lines(db, lines_payload)
    if _order_number_exists(db, order_number):
        raise DuplicateOrderNumber(f"Order number '{order_number}' already exists.")

    order = BlanketOrder(
        order_number=order_number,
        customer_name=header["customer_name"].strip(),
        customer_code=header.get("customer_code"),
        order_date=header.get("order_date") or date.today(),
        start_date=header["start_date"],
        end_date=header["end_date"],
        notes=header.get("notes"),
        status=ORDER_ACTIVE,
        created_by_user_id=user_id,
    )
    order.lines = lines
    db.add(order)
    try:
        db.flush()
    except IntegrityError as exc:
        if "order_number" not in str(exc.orig):
            raise
        # Lost the race to a concurrent insert of the same number.
        raise DuplicateOrderNumber(f"Order number '{order_number}' already exists.") from exc
    logger.info("Blanket order created: id=%s number=%s lines=%s", order.id, order.order_number, len(lines))
    return order


def get_order(db: Session, order_id: int) -> BlanketOrder:
    order = (
        db.query(BlanketOrder)
        .options(selectinload(BlanketOrder.lines).selectinload(BlanketOrderLine.item))
        .filter(BlanketOrder.id == order_id)
        .first()
    )
    if not order:
        raise NotFound(f"Blanket order not found: {order_id}")
    return order


def list_orders(db: Session, status: Optional[str] = None) -> Sequence[BlanketOrder]:
    query = db.query(BlanketOrder).options(selectinload(BlanketOrder.lines)).order_by(BlanketOrder.created_at.desc())
    if status:
        query = query.filter(BlanketOrder.status == status)
    return query.all()


def get_line(db: Session, line_id: int, *, for_update: bool = False) -> BlanketOrderLine:
    query = db.query(BlanketOrderLine).filter(BlanketOrderLine.id == line_id)
    if for_update:
        query = query.with_for_update().populate_existing()
    line = query.first()
    if not line:
        raise NotFound(f"Order line not found: {line_id}")
    return line


def list_available_lines(db: Session) -> Sequence[BlanketOrderLine]:
    return (
        db.query(BlanketOrderLine)
        .join(BlanketOrder, BlanketOrder.id == BlanketOrderLine.blanket_order_id)
        .options(selectinload(BlanketOrderLine.item), selectinload(BlanketOrderLine.blanket_order))
        .filter(BlanketOrder.status == ORDER_ACTIVE, BlanketOrderLine.remaining_quantity > 0)
        .order_by(BlanketOrder.order_number.asc(), BlanketOrderLine.line_number.asc())
        .all()
    )


def update_order_status(db: Session, order_id: int, status: str) -> BlanketOrder:
    order = (
        db.query(BlanketOrder)
        .filter(BlanketOrder.id == order_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not order:
        raise NotFound(f"Blanket order not found: {order_id}")
    if status == order.status:
        return order
    if status not in ORDER_STATUS_TRANSITIONS.get(order.status, set()):
        raise InvalidStatusTransition(order.status, status, entity="Blanket order")
    previous = order.status
    order.status = status
    db.flush()
    logger.info("Blanket order %s status %s -> %s", order.order_number, previous, status)
    return order


def complete_order_if_fulfilled(db: Session, order: BlanketOrder) -> bool:
    if order.status != ORDER_ACTIVE:
        return False
    if not all(to_quantity(line.delivered_quantity) >= to_quantity(line.total_quantity) for line in order.lines):
        return False
    order.status = ORDER_COMPLETED
    logger.info("Blanket order %s marked COMPLETED (all deliveries fulfilled)", order.order_number)
    return True


def get_order_statistics(db: Session, order_id: int) -> dict:
    order = get_order(db, order_id)
    total = sum((to_quantity(line.total_quantity) for line in order.lines), Decimal("0"))
    released = sum((to_quantity(line.released_quantity) for line in order.lines), Decimal("0"))
    delivered = sum((to_quantity(line.delivered_quantity) for line in order.lines), Decimal("0"))
    completion = (delivered / total * 100) if total > 0 else Decimal("0")
    return {
        "order_id": order.id,
        "total_quantity": total,
        "released_quantity": released,
        "delivered_quantity": delivered,
        "pending_quantity": total - delivered,
        "completion_percentage": completion.quantize(Decimal("0.01")),
    }
