"""
SQLAlchemy Database Models

Restaurants, their branches and menus, and the orders customers
place against a branch:
- Role-scoped users (customer, branch manager, restaurant admin, super admin)
- Branch manager assignments (many-to-many)
- Orders with line items and flat add-on records
- Payment state tracked separately from the staff-controlled order status
"""

import enum

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, ForeignKey, Table
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from order_api.database import Base


class UserRole(str, enum.Enum):
    """Determines read/write scope over orders."""
    CUSTOMER = "CUSTOMER"
    BRANCH_MANAGER = "BRANCH_MANAGER"
    RESTAURANT_ADMIN = "RESTAURANT_ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class DeliveryType(str, enum.Enum):
    """Order type - Pickup or Delivery."""
    PICKUP = "PICKUP"
    DELIVERY = "DELIVERY"


class PaymentStatus(str, enum.Enum):
    """
    Payment state machine.

        PENDING_PAYMENT -> PAYMENT_INITIATED -> CONFIRMED
        PENDING_PAYMENT -> PAYMENT_FAILED
        PAYMENT_INITIATED -> PAYMENT_FAILED
    """
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAYMENT_INITIATED = "PAYMENT_INITIATED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    CONFIRMED = "CONFIRMED"


PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING_PAYMENT: frozenset(
        {PaymentStatus.PAYMENT_INITIATED, PaymentStatus.PAYMENT_FAILED}
    ),
    PaymentStatus.PAYMENT_INITIATED: frozenset(
        {PaymentStatus.CONFIRMED, PaymentStatus.PAYMENT_FAILED}
    ),
    PaymentStatus.PAYMENT_FAILED: frozenset(),
    PaymentStatus.CONFIRMED: frozenset(),
}

# Initial value of Order.status; later values are set by staff
ORDER_STATUS_PENDING = "PENDING"


# =============================================================================
# ASSOCIATION TABLES
# =============================================================================

branch_managers = Table(
    "branch_managers",
    Base.metadata,
    Column("branch_id", Integer, ForeignKey("branches.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

order_item_addons = Table(
    "order_item_addons",
    Base.metadata,
    Column("order_item_id", Integer, ForeignKey("order_items.id", ondelete="CASCADE"), primary_key=True),
    Column("addon_id", Integer, ForeignKey("addons.id"), primary_key=True),
)


# =============================================================================
# ACCOUNTS & RESTAURANTS
# =============================================================================

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(Enum(UserRole), default=UserRole.CUSTOMER, nullable=False)

    managed_branches = relationship(
        "Branch", secondary=branch_managers, back_populates="managers"
    )

    def __repr__(self):
        return f"<User #{self.id} - {self.role.value}>"


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    admin_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    branches = relationship("Branch", back_populates="restaurant")
    menu_items = relationship("MenuItem", back_populates="restaurant")

    def __repr__(self):
        return f"<Restaurant #{self.id} - {self.name}>"


class Branch(Base):
    """A physical outlet of a restaurant with its own managers and orders."""
    __tablename__ = "branches"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)

    restaurant = relationship("Restaurant", back_populates="branches")
    managers = relationship(
        "User", secondary=branch_managers, back_populates="managed_branches"
    )

    def __repr__(self):
        return f"<Branch #{self.id} - {self.name}>"


# =============================================================================
# MENU
# =============================================================================

class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    price = Column(Float, nullable=False)

    restaurant = relationship("Restaurant", back_populates="menu_items")

    def __repr__(self):
        return f"<MenuItem #{self.id} - {self.name} - {self.price:.2f}>"


class Addon(Base):
    """Optional extra for an order line. Groups exist only client-side."""
    __tablename__ = "addons"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    price = Column(Float, nullable=False, default=0.0)

    def __repr__(self):
        return f"<Addon #{self.id} - {self.name}>"


# =============================================================================
# ORDERS
# =============================================================================

class Order(Base):
    """
    Main Order table.

    ``restaurant_id`` duplicates ``branch.restaurant_id`` so restaurant-wide
    listings need no join.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    customer_name = Column(String(100), nullable=False)

    # =========================================================================
    # STATUS
    # =========================================================================
    status = Column(String(50), default=ORDER_STATUS_PENDING, nullable=False, index=True)
    payment_status = Column(
        Enum(PaymentStatus),
        default=PaymentStatus.PENDING_PAYMENT,
        nullable=False,
    )
    payment_intent_id = Column(String(100), nullable=True, unique=True)

    delivery_type = Column(
        Enum(DeliveryType),
        default=DeliveryType.PICKUP,
        nullable=False,
    )

    # =========================================================================
    # PRICING
    # =========================================================================
    subtotal = Column(Float, nullable=False, default=0.0)
    order_discount = Column(Float, nullable=False, default=0.0)
    platform_fee = Column(Float, nullable=False, default=0.0)
    payment_processing_fee = Column(Float, nullable=False, default=0.0)
    delivery_charge = Column(Float, nullable=False, default=0.0)
    delivery_discount = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    branch = relationship("Branch")
    restaurant = relationship("Restaurant")
    user = relationship("User")
    order_items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    def __repr__(self):
        return f"<Order #{self.id} - {self.status} - {self.payment_status.value}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    order = relationship("Order", back_populates="order_items")
    menu_item = relationship("MenuItem")
    addons = relationship("Addon", secondary=order_item_addons, order_by="Addon.id")

    def __repr__(self):
        return f"<OrderItem #{self.id} - menu_item={self.menu_item_id} x{self.quantity}>"
