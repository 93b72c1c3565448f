from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship

from .db import Base
from .errors import ImmutableRecordError


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    full_name = Column(String(200), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        Enum("OPERATOR", "SUPERVISOR", "MANAGER", name="user_role"),
        nullable=False,
        default="OPERATOR",
    )
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    entity_type = Column(String(100), nullable=False)
    entity_id = Column(Integer, nullable=False)
    action = Column(String(50), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    event_metadata = Column(Text, nullable=True)


class Item(Base):
    __tablename__ = "items"

    id = Column(Integer, primary_key=True)
    item_code = Column(String(100), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    uom = Column(String(20), nullable=False, default="EA")
    min_stock = Column(Numeric(14, 2), nullable=False, default=0)
    max_stock = Column(Numeric(14, 2), nullable=False, default=0)
    safety_stock = Column(Numeric(14, 2), nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    inventory = relationship("Inventory", back_populates="item", uselist=False)


class Inventory(Base):
    __tablename__ = "inventory"

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, unique=True)
    available_stock = Column(Numeric(14, 2), nullable=False, default=0)
    reserved_stock = Column(Numeric(14, 2), nullable=False, default=0)
    in_transit_stock = Column(Numeric(14, 2), nullable=False, default=0)
    last_movement_at = Column(DateTime, nullable=True)
    last_movement_type = Column(String(10), nullable=True)
    version_id = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    item = relationship("Item", back_populates="inventory")

    __table_args__ = (
        CheckConstraint("available_stock >= 0", name="ck_inventory_available_non_negative"),
        CheckConstraint("reserved_stock >= 0", name="ck_inventory_reserved_non_negative"),
        CheckConstraint("in_transit_stock >= 0", name="ck_inventory_in_transit_non_negative"),
    )
    __mapper_args__ = {"version_id_col": version_id}


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    movement_type = Column(Enum("IN", "OUT", name="movement_type"), nullable=False)
    transaction_type = Column(String(50), nullable=False)
    quantity = Column(Numeric(14, 2), nullable=False)
    balance_after = Column(Numeric(14, 2), nullable=False)
    reference_type = Column(String(50), nullable=True)
    reference_id = Column(Integer, nullable=True)
    reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    item = relationship("Item")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movement_quantity_positive"),
        CheckConstraint("balance_after >= 0", name="ck_stock_movement_balance_non_negative"),
    )

    @property
    def signed_quantity(self) -> Decimal:
        qty = Decimal(self.quantity or 0)
        return qty if self.movement_type == "IN" else -qty


@event.listens_for(StockMovement, "before_update")
def prevent_movement_update(mapper, connection, target):
    raise ImmutableRecordError(f"Stock movement {target.id} is immutable and cannot be modified.")


@event.listens_for(StockMovement, "before_delete")
def prevent_movement_delete(mapper, connection, target):
    raise ImmutableRecordError(f"Stock movement {target.id} is immutable and cannot be deleted.")


class BlanketOrder(Base):
    __tablename__ = "blanket_orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(50), unique=True, nullable=False)
    customer_name = Column(String(200), nullable=False)
    customer_code = Column(String(50), nullable=True)
    order_date = Column(Date, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(
        Enum("ACTIVE", "COMPLETED", "CANCELLED", name="blanket_order_status"),
        nullable=False,
        default="ACTIVE",
    )
    notes = Column(Text, nullable=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    lines = relationship(
        "BlanketOrderLine",
        back_populates="blanket_order",
        cascade="all, delete-orphan",
        order_by="BlanketOrderLine.line_number",
    )

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_blanket_order_date_window"),
    )


class BlanketOrderLine(Base):
    __tablename__ = "blanket_order_lines"

    id = Column(Integer, primary_key=True)
    blanket_order_id = Column(Integer, ForeignKey("blanket_orders.id"), nullable=False, index=True)
    line_number = Column(Integer, nullable=False)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    total_quantity = Column(Numeric(14, 2), nullable=False)
    released_quantity = Column(Numeric(14, 2), nullable=False, default=0)
    delivered_quantity = Column(Numeric(14, 2), nullable=False, default=0)
    unit_price = Column(Numeric(14, 2), nullable=True)
    version_id = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    blanket_order = relationship("BlanketOrder", back_populates="lines")
    item = relationship("Item")
    releases = relationship("BlanketRelease", back_populates="line", order_by="BlanketRelease.id")

    __table_args__ = (
        UniqueConstraint("blanket_order_id", "line_number", name="uq_blanket_order_line_number"),
        CheckConstraint("total_quantity > 0", name="ck_blanket_line_total_positive"),
        CheckConstraint(
            "delivered_quantity >= 0 AND delivered_quantity <= released_quantity "
            "AND released_quantity <= total_quantity",
            name="ck_blanket_line_quantity_bounds",
        ),
    )
    __mapper_args__ = {"version_id_col": version_id}

    @hybrid_property
    def remaining_quantity(self):
        return self.total_quantity - self.released_quantity

    @property
    def item_code(self):
        return self.item.item_code if self.item else None

    @property
    def order_number(self):
        return self.blanket_order.order_number if self.blanket_order else None


class BlanketRelease(Base):
    __tablename__ = "blanket_releases"

    id = Column(Integer, primary_key=True)
    release_number = Column(String(50), unique=True, nullable=False)
    blanket_order_line_id = Column(Integer, ForeignKey("blanket_order_lines.id"), nullable=False, index=True)
    quantity = Column(Numeric(14, 2), nullable=False)
    status = Column(
        Enum("PENDING", "SHIPPED", "DELIVERED", name="blanket_release_status"),
        nullable=False,
        default="PENDING",
    )
    scheduled_delivery_date = Column(Date, nullable=False)
    shipped_at = Column(DateTime, nullable=True)
    actual_delivery_date = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    version_id = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    line = relationship("BlanketOrderLine", back_populates="releases")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_blanket_release_quantity_positive"),
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def blanket_order_id(self):
        return self.line.blanket_order_id if self.line else None

    @property
    def item_id(self):
        return self.line.item_id if self.line else None
