"""
Order Service

Business logic behind the /order endpoints:

    - list_orders:        role-scoped retrieval, newest first
    - get_order:          single order, visible to its customer and its staff
    - create_order:       validation, pricing, persistence, payment intent
    - update_status:      staff-only status changes
    - apply_payment_event: payment provider callbacks (payment state machine)

The service is constructed per request with the request's AsyncSession
and the process-wide payment gateway. It raises the exceptions from
``order_api.core.errors``; the HTTP layer renders them.
"""

import logging
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from order_api.auth import Identity
from order_api.core.config import Settings, get_settings
from order_api.core.errors import (
    Forbidden,
    NotFound,
    OrderAPIError,
    ProcessingFailure,
    ValidationFailed,
    translate_integrity_error,
)
from order_api.models import (
    ORDER_STATUS_PENDING,
    PAYMENT_TRANSITIONS,
    Addon,
    Branch,
    MenuItem,
    Order,
    OrderItem,
    PaymentStatus,
    Restaurant,
    UserRole,
    branch_managers,
)
from order_api.schemas import OrderCreate
from order_api.services.payment import (
    BasePaymentService,
    PaymentIntentResult,
    to_minor_units,
)
from order_api.services.pricing import price_order, totals_match

logger = logging.getLogger(__name__)

MAX_STATUS_LENGTH = 50

# Items (with menu item and add-ons) and branch, as returned to clients
ORDER_DETAIL_OPTIONS = (
    selectinload(Order.order_items).selectinload(OrderItem.menu_item),
    selectinload(Order.order_items).selectinload(OrderItem.addons),
    selectinload(Order.branch),
)

# What the staff authorization check reads
ORDER_ACCESS_OPTIONS = (
    selectinload(Order.branch).selectinload(Branch.restaurant),
    selectinload(Order.branch).selectinload(Branch.managers),
)

PAYMENT_EVENT_TARGETS = {
    "payment_intent.succeeded": PaymentStatus.CONFIRMED,
    "payment_intent.payment_failed": PaymentStatus.PAYMENT_FAILED,
    "payment_intent.canceled": PaymentStatus.PAYMENT_FAILED,
}


def can_manage_order(identity: Identity, order: Order) -> bool:
    """
    Staff authorization for an order.

    ``order.branch.restaurant`` and ``order.branch.managers`` must be loaded.
    """
    if identity.role == UserRole.SUPER_ADMIN:
        return True
    if identity.role == UserRole.RESTAURANT_ADMIN:
        return order.branch.restaurant.admin_id == identity.id
    if identity.role == UserRole.BRANCH_MANAGER:
        return any(manager.id == identity.id for manager in order.branch.managers)
    return False


def can_advance_payment(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in PAYMENT_TRANSITIONS[current]


def _distinct(ids: Sequence[int]) -> list[int]:
    return list(dict.fromkeys(ids))


class OrderService:
    """
    Args:
        db: Session for this request
        payment_service: Gateway used to create payment intents
        settings: Defaults to the cached application settings
    """

    def __init__(
        self,
        db: AsyncSession,
        payment_service: BasePaymentService,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.payment_service = payment_service
        self.settings = settings or get_settings()

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def _load_order(self, order_id: int, *options) -> Optional[Order]:
        query = (
            select(Order)
            .options(*ORDER_DETAIL_OPTIONS, *options)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _find_orders(self, *criteria) -> list[Order]:
        query = (
            select(Order)
            .options(*ORDER_DETAIL_OPTIONS)
            .where(*criteria)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_orders(
        self,
        identity: Identity,
        restaurant_id: Optional[int] = None,
        branch_manager_id: Optional[int] = None,
    ) -> list[Order]:
        """
        Orders visible to the caller, newest first.

        First matching rule wins:
            1. restaurant_id given and caller is RESTAURANT_ADMIN:
               every order of that restaurant (caller must own it)
            2. branch_manager_id given and caller is BRANCH_MANAGER:
               every order of the branches that manager runs (must be the caller)
            3. otherwise: the caller's own orders
        """
        try:
            if restaurant_id is not None and identity.role == UserRole.RESTAURANT_ADMIN:
                restaurant = await self.db.get(Restaurant, restaurant_id)
                if restaurant is None or restaurant.admin_id != identity.id:
                    raise Forbidden(
                        "Not authorized to view orders for this restaurant",
                        details={"restaurantId": restaurant_id},
                    )
                return await self._find_orders(Order.restaurant_id == restaurant_id)

            if branch_manager_id is not None and identity.role == UserRole.BRANCH_MANAGER:
                if branch_manager_id != identity.id:
                    raise Forbidden(
                        "Not authorized to view orders for this manager",
                        details={"branchManagerId": branch_manager_id},
                    )
                managed = select(branch_managers.c.branch_id).where(
                    branch_managers.c.user_id == branch_manager_id
                )
                return await self._find_orders(Order.branch_id.in_(managed))

            return await self._find_orders(Order.user_id == identity.id)

        except SQLAlchemyError as e:
            logger.exception(f"Error fetching orders: {e}")
            raise ProcessingFailure("Failed to fetch orders", cause=e) from e

    async def get_order(self, identity: Identity, order_id: int) -> Order:
        try:
            order = await self._load_order(order_id, *ORDER_ACCESS_OPTIONS)
        except SQLAlchemyError as e:
            logger.exception(f"Error fetching order #{order_id}: {e}")
            raise ProcessingFailure("Failed to fetch orders", cause=e) from e

        if order is None:
            raise NotFound("Order not found")
        if order.user_id != identity.id and not can_manage_order(identity, order):
            raise Forbidden("Not authorized to view this order")
        return order

    # =========================================================================
    # CREATION
    # =========================================================================

    async def _resolve(self, model, ids: list[int], *criteria) -> dict[int, Any]:
        if not ids:
            return {}
        result = await self.db.execute(select(model).where(model.id.in_(ids), *criteria))
        return {row.id: row for row in result.scalars().all()}

    async def create_order(
        self,
        identity: Identity,
        payload: OrderCreate,
    ) -> tuple[Order, PaymentIntentResult]:
        """
        Validate, price and persist an order, then open a payment intent.

        Returns the persisted order (items, menu items, add-ons, branch)
        and the intent. A failed intent leaves the order in PAYMENT_FAILED
        and raises ProcessingFailure.
        """
        missing = []
        if payload.branch_id is None:
            missing.append("branchId")
        if not payload.items:
            missing.append("items")
        if not payload.total:
            missing.append("total")
        if missing:
            raise ValidationFailed(
                "Missing required fields",
                details={
                    "missing": missing,
                    "branchId": payload.branch_id,
                    "itemsLength": len(payload.items) if payload.items is not None else None,
                    "total": payload.total,
                },
            )
        if payload.total < 0:
            raise ValidationFailed(
                "Order total must be greater than 0",
                details={"total": payload.total},
            )

        try:
            return await self._create_order(identity, payload)
        except OrderAPIError:
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error while creating order: {e}")
            raise ProcessingFailure(
                "Failed to process order", details={"message": str(e)}, cause=e
            ) from e

    async def _create_order(
        self,
        identity: Identity,
        payload: OrderCreate,
    ) -> tuple[Order, PaymentIntentResult]:
        result = await self.db.execute(
            select(Branch)
            .options(selectinload(Branch.restaurant))
            .where(Branch.id == payload.branch_id)
        )
        branch = result.scalar_one_or_none()
        if branch is None:
            raise NotFound("Branch not found", details={"branchId": payload.branch_id})

        if payload.restaurant_id is not None and payload.restaurant_id != branch.restaurant_id:
            raise ValidationFailed(
                "Branch does not belong to restaurant",
                details={
                    "branchId": branch.id,
                    "restaurantId": payload.restaurant_id,
                    "branchRestaurantId": branch.restaurant_id,
                },
            )

        menu_item_ids = _distinct([item.menu_item.id for item in payload.items])
        # Only the branch's own restaurant menu counts
        menu_items = await self._resolve(
            MenuItem, menu_item_ids, MenuItem.restaurant_id == branch.restaurant_id
        )
        if len(menu_items) != len(menu_item_ids):
            raise ValidationFailed(
                "One or more menu items not found",
                details={"requested": menu_item_ids, "found": sorted(menu_items)},
            )

        addon_ids = _distinct([a for item in payload.items for a in item.addon_ids])
        addons = await self._resolve(Addon, addon_ids)
        if len(addons) != len(addon_ids):
            raise ValidationFailed(
                "One or more add-ons not found",
                details={"requested": addon_ids, "found": sorted(addons)},
            )

        pricing = price_order(
            payload.items,
            menu_items,
            addons,
            discount=payload.discount,
            platform_fee=payload.platform_fee,
            payment_fee=payload.payment_fee,
        )
        if not totals_match(payload.total, pricing.total, self.settings.price_tolerance):
            raise ValidationFailed(
                "Order total mismatch",
                details={
                    "expected": pricing.total,
                    "received": payload.total,
                    "subtotal": pricing.subtotal,
                },
            )

        order = Order(
            restaurant_id=branch.restaurant_id,
            branch_id=branch.id,
            user_id=identity.id,
            customer_name=identity.name or "Guest",
            status=ORDER_STATUS_PENDING,
            payment_status=PaymentStatus.PENDING_PAYMENT,
            delivery_type=payload.delivery_type,
            subtotal=pricing.subtotal,
            order_discount=pricing.discount,
            platform_fee=pricing.platform_fee,
            payment_processing_fee=pricing.payment_fee,
            delivery_charge=pricing.delivery_charge,
            delivery_discount=pricing.delivery_discount,
            total=pricing.total,
            order_items=[
                OrderItem(
                    menu_item_id=item.menu_item.id,
                    quantity=item.quantity,
                    addons=[addons[addon_id] for addon_id in item.addon_ids],
                )
                for item in payload.items
            ],
        )

        self.db.add(order)
        await self._commit()

        logger.info(
            f"Order #{order.id} created - branch={branch.id} user={identity.id} "
            f"items={len(payload.items)} total={order.total:.2f}"
        )

        intent = await self._open_payment_intent(order, identity)
        if not intent.success:
            order.payment_status = PaymentStatus.PAYMENT_FAILED
            await self.db.commit()
            logger.warning(
                f"Order #{order.id} payment failed - {intent.error_code}: {intent.error_message}"
            )
            raise ProcessingFailure(
                "Failed to initiate payment",
                details={
                    "orderId": order.id,
                    "paymentStatus": PaymentStatus.PAYMENT_FAILED.value,
                    "reason": intent.error_message,
                    "code": intent.error_code,
                },
            )

        order.payment_intent_id = intent.payment_intent_id
        order.payment_status = PaymentStatus.PAYMENT_INITIATED
        await self._commit()
        logger.info(f"Order #{order.id} payment intent created: {intent.payment_intent_id}")

        return await self._load_order(order.id), intent

    async def _commit(self) -> None:
        """Commit, mapping constraint violations to client errors."""
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            error = translate_integrity_error(e)
            logger.warning(f"Order rejected by database: {error.message} - {e.orig}")
            raise error from e

    async def _open_payment_intent(self, order: Order, identity: Identity) -> PaymentIntentResult:
        amount = to_minor_units(order.total)
        try:
            return await self.payment_service.create_payment_intent(
                amount=amount,
                currency=self.settings.stripe_currency,
                metadata={"orderId": str(order.id), "userId": str(identity.id)},
            )
        except Exception as e:
            logger.exception(f"Payment gateway error for order #{order.id}: {e}")
            return PaymentIntentResult(
                success=False,
                amount=amount,
                currency=self.settings.stripe_currency,
                error_message=str(e),
                error_code="gateway_error",
            )

    # =========================================================================
    # STATUS UPDATES
    # =========================================================================

    async def update_status(
        self,
        identity: Identity,
        order_id: Optional[int],
        status: Optional[str],
    ) -> Order:
        """
        Set an order's status. Any status string is accepted; repeating
        the current status is a successful no-op.
        """
        if not order_id or not status:
            raise ValidationFailed(
                "Order ID and status are required",
                details={"orderId": order_id, "status": status},
            )
        if len(status) > MAX_STATUS_LENGTH:
            raise ValidationFailed(
                f"Status must be at most {MAX_STATUS_LENGTH} characters",
                details={"status": status},
            )

        try:
            order = await self._load_order(order_id, *ORDER_ACCESS_OPTIONS)
            if order is None:
                raise NotFound("Order not found", details={"orderId": order_id})

            if not can_manage_order(identity, order):
                logger.warning(
                    f"User #{identity.id} ({identity.role.value}) denied status update on order #{order_id}"
                )
                raise Forbidden("Not authorized to update this order")

            if order.status != status:
                previous = order.status
                order.status = status
                await self.db.commit()
                logger.info(f"Order #{order_id} status {previous} -> {status} by user #{identity.id}")

            return await self._load_order(order_id)

        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Error updating order #{order_id}: {e}")
            raise ProcessingFailure("Failed to update order", cause=e) from e

    # =========================================================================
    # PAYMENT EVENTS
    # =========================================================================

    async def apply_payment_event(self, event: dict[str, Any]) -> bool:
        """
        Apply a verified payment provider event.

        Returns True if an order's payment status changed. Unknown events,
        unknown orders and disallowed transitions are ignored.
        """
        event_type = event.get("type")
        target = PAYMENT_EVENT_TARGETS.get(event_type)
        if target is None:
            logger.debug(f"Ignoring payment event {event_type}")
            return False

        intent = (event.get("data") or {}).get("object") or {}
        order_ref = (intent.get("metadata") or {}).get("orderId")
        try:
            order_id = int(order_ref)
        except (TypeError, ValueError):
            logger.warning(f"Payment event {event_type} without a valid orderId: {order_ref!r}")
            return False

        order = await self.db.get(Order, order_id)
        if order is None:
            logger.warning(f"Payment event {event_type} for unknown order #{order_id}")
            return False

        intent_id = intent.get("id")
        if order.payment_intent_id and intent_id and intent_id != order.payment_intent_id:
            logger.warning(
                f"Payment event {event_type} intent {intent_id} does not match "
                f"order #{order_id} intent {order.payment_intent_id}"
            )
            return False

        if not can_advance_payment(order.payment_status, target):
            logger.info(
                f"Order #{order_id} payment status {order.payment_status.value} "
                f"unchanged by {event_type}"
            )
            return False

        order.payment_status = target
        await self.db.commit()
        logger.info(f"Order #{order_id} payment status -> {target.value}")
        return True
