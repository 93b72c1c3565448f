from datetime import datetime
from decimal import Decimal, InvalidOperation
import logging
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from app.errors import InsufficientStock, NotFound, ValidationError
from app.models import Inventory, Item, StockMovement


logger = logging.getLogger(__name__)

MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"

TXN_RELEASE_DELIVERY = "RELEASE_DELIVERY"
TXN_MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"
TXN_PRODUCTION = "PRODUCTION"
TXN_STOCK_TRANSFER = "STOCK_TRANSFER"
TXN_RETURN = "RETURN"
ADJUSTMENT_TRANSACTION_TYPES = {TXN_MANUAL_ADJUSTMENT, TXN_PRODUCTION, TXN_STOCK_TRANSFER, TXN_RETURN}

REFERENCE_RELEASE = "Release"
REFERENCE_ADJUSTMENT = "Adjustment"

STOCK_CRITICAL = "CRITICAL"
STOCK_LOW = "LOW"
STOCK_HEALTHY = "HEALTHY"
STOCK_OVERSTOCK = "OVERSTOCK"

QUANTITY_EXPONENT = -2


def to_quantity(value) -> Decimal:
    return Decimal(str(value if value is not None else 0))


def require_quantity(value, label: str = "Quantity") -> Decimal:
    """Parse a caller-supplied quantity: positive, at most two decimal places."""
    try:
        qty = to_quantity(value)
    except InvalidOperation as exc:
        raise ValidationError(f"{label} must be a number.") from exc
    if not qty.is_finite():
        raise ValidationError(f"{label} must be a number.")
    if qty.normalize().as_tuple().exponent < QUANTITY_EXPONENT:
        raise ValidationError(f"{label} cannot have more than two decimal places.")
    if qty <= 0:
        raise ValidationError(f"{label} must be greater than zero.")
    return qty


def get_inventory(db: Session, item_id: int, *, for_update: bool = False) -> Inventory:
    query = db.query(Inventory).filter(Inventory.item_id == item_id)
    if for_update:
        query = query.with_for_update().populate_existing()
    inventory = query.first()
    if not inventory:
        raise NotFound(f"Inventory not found for item {item_id}.")
    return inventory


def ensure_inventory(db: Session, item_id: int) -> Inventory:
    """Return the inventory row for an item, creating it at zero stock if missing."""
    inventory = (
        db.query(Inventory)
        .filter(Inventory.item_id == item_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if inventory:
        return inventory
    inventory = Inventory(
        item_id=item_id,
        available_stock=Decimal("0"),
        reserved_stock=Decimal("0"),
        in_transit_stock=Decimal("0"),
    )
    db.add(inventory)
    db.flush()
    return inventory


def _append_movement(
    db: Session,
    *,
    inventory: Inventory,
    movement_type: str,
    quantity: Decimal,
    transaction_type: str,
    reference_type: Optional[str],
    reference_id: Optional[int],
    reason: Optional[str] = None,
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
) -> StockMovement:
    now = datetime.utcnow()
    movement = StockMovement(
        item_id=inventory.item_id,
        movement_type=movement_type,
        transaction_type=transaction_type,
        quantity=quantity,
        balance_after=inventory.available_stock,
        reference_type=reference_type,
        reference_id=reference_id,
        reason=reason,
        notes=notes,
        created_by_user_id=user_id,
        created_at=now,
    )
    inventory.last_movement_at = now
    inventory.last_movement_type = movement_type
    db.add(movement)
    logger.info(
        "Ledger append: item_id=%s type=%s txn=%s qty=%s balance_after=%s ref=%s:%s",
        inventory.item_id,
        movement_type,
        transaction_type,
        quantity,
        inventory.available_stock,
        reference_type,
        reference_id,
    )
    return movement


def _apply_out(db: Session, inventory: Inventory, qty: Decimal) -> Decimal:
    available = to_quantity(inventory.available_stock)
    if available < qty:
        logger.warning(
            "Rejected stock OUT: item_id=%s available=%s requested=%s",
            inventory.item_id,
            available,
            qty,
        )
        raise InsufficientStock(item_id=inventory.item_id, available=available, requested=qty)
    inventory.available_stock = available - qty
    return inventory.available_stock


def deduct(
    db: Session,
    *,
    item_id: int,
    qty,
    reference_type: str,
    reference_id: Optional[int],
    user_id: Optional[int] = None,
    transaction_type: str = TXN_RELEASE_DELIVERY,
    notes: Optional[str] = None,
) -> Decimal:
    """Remove stock for a delivery and record the OUT movement.

    Returns the new available stock. Nothing is mutated when the item
    does not hold enough stock.
    """
    qty = require_quantity(qty)
    inventory = get_inventory(db, item_id, for_update=True)
    new_stock = _apply_out(db, inventory, qty)
    _append_movement(
        db,
        inventory=inventory,
        movement_type=MOVEMENT_OUT,
        quantity=qty,
        transaction_type=transaction_type,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
        user_id=user_id,
    )
    db.flush()
    return new_stock


def adjust(
    db: Session,
    *,
    item_id: int,
    direction: str,
    qty,
    reason: str,
    reference_type: Optional[str] = REFERENCE_ADJUSTMENT,
    reference_id: Optional[int] = None,
    transaction_type: str = TXN_MANUAL_ADJUSTMENT,
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
) -> StockMovement:
    if direction not in {MOVEMENT_IN, MOVEMENT_OUT}:
        raise ValidationError("Direction must be IN or OUT.")
    if not reason or not reason.strip():
        raise ValidationError("Reason is required for inventory adjustment.")
    if transaction_type not in ADJUSTMENT_TRANSACTION_TYPES:
        raise ValidationError(f"Unsupported adjustment transaction type: {transaction_type}.")
    qty = require_quantity(qty)

    inventory = get_inventory(db, item_id, for_update=True)
    if direction == MOVEMENT_OUT:
        _apply_out(db, inventory, qty)
    else:
        inventory.available_stock = to_quantity(inventory.available_stock) + qty

    movement = _append_movement(
        db,
        inventory=inventory,
        movement_type=direction,
        quantity=qty,
        transaction_type=transaction_type,
        reference_type=reference_type,
        reference_id=reference_id,
        reason=reason.strip(),
        notes=notes,
        user_id=user_id,
    )
    db.flush()
    return movement


def shift_projections(
    db: Session,
    *,
    item_id: int,
    reserved_delta: Decimal = Decimal("0"),
    in_transit_delta: Decimal = Decimal("0"),
) -> Inventory:
    """Move the reserved/in-transit counters. Available stock is untouched."""
    inventory = get_inventory(db, item_id, for_update=True)
    inventory.reserved_stock = max(to_quantity(inventory.reserved_stock) + reserved_delta, Decimal("0"))
    inventory.in_transit_stock = max(to_quantity(inventory.in_transit_stock) + in_transit_delta, Decimal("0"))
    return inventory


def get_balance(db: Session, item_id: int) -> Inventory:
    return get_inventory(db, item_id)


def list_movements(db: Session, item_id: Optional[int] = None, limit: Optional[int] = None) -> list[StockMovement]:
    query = db.query(StockMovement)
    if item_id is not None:
        query = query.filter(StockMovement.item_id == item_id)
    query = query.order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
    if limit is not None:
        # Most recent window, still returned oldest first.
        total = query.count()
        if total > limit:
            query = query.offset(total - limit)
        query = query.limit(limit)
    return query.all()


def replay_balance(db: Session, item_id: int) -> Decimal:
    balance = Decimal("0")
    for movement in list_movements(db, item_id):
        balance += movement.signed_quantity
    return balance


def stock_status(item: Item, available) -> str:
    available = to_quantity(available)
    if available <= to_quantity(item.safety_stock):
        return STOCK_CRITICAL
    if available <= to_quantity(item.min_stock):
        return STOCK_LOW
    max_stock = to_quantity(item.max_stock)
    if max_stock > 0 and available > max_stock:
        return STOCK_OVERSTOCK
    return STOCK_HEALTHY


def list_inventory(db: Session) -> list[Inventory]:
    return (
        db.query(Inventory)
        .options(selectinload(Inventory.item))
        .join(Item, Item.id == Inventory.item_id)
        .order_by(Item.item_code.asc())
        .all()
    )
