"""
Pydantic Schemas for Request/Response Validation

Wire format is camelCase JSON. Request fields the order service checks
itself (branch, items, total, order id, status) are optional here so
that their absence is reported as a named missing field rather than a
generic parse error.
"""

from datetime import datetime
from typing import Optional, List, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from order_api.models import DeliveryType, PaymentStatus


class CamelModel(BaseModel):
    """Base schema: camelCase aliases, accepts either spelling on input."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class MenuItemRef(CamelModel):
    id: int


class AddonRef(CamelModel):
    id: int


class AddonGroupSelection(CamelModel):
    """Add-ons chosen from one add-on group of a menu item."""
    name: Optional[str] = Field(None, max_length=100)
    items: List[AddonRef] = Field(default_factory=list)


class OrderItemCreate(CamelModel):
    """Single line of an order."""
    menu_item: MenuItemRef
    quantity: int = Field(default=1, ge=1, le=99, examples=[2])
    addons: Optional[List[AddonGroupSelection]] = None

    @property
    def addon_ids(self) -> list[int]:
        """Distinct add-on ids flattened across all selected groups."""
        ids = [addon.id for group in self.addons or [] for addon in group.items]
        return list(dict.fromkeys(ids))


class OrderCreate(CamelModel):
    """Request schema for creating a new order."""
    restaurant_id: Optional[int] = None
    branch_id: Optional[int] = None
    items: Optional[List[OrderItemCreate]] = None
    delivery_type: DeliveryType = DeliveryType.PICKUP
    subtotal: Optional[float] = Field(None, ge=0)
    discount: float = Field(default=0.0, ge=0)
    platform_fee: float = Field(default=0.0, ge=0)
    payment_fee: float = Field(default=0.0, ge=0)
    total: Optional[float] = None


class OrderStatusUpdate(CamelModel):
    order_id: Optional[int] = None
    status: Optional[str] = None


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class MenuItemResponse(CamelModel):
    id: int
    restaurant_id: int
    name: str
    price: float


class AddonResponse(CamelModel):
    id: int
    name: str
    price: float


class BranchResponse(CamelModel):
    id: int
    name: str
    restaurant_id: int


class OrderItemResponse(CamelModel):
    id: int
    menu_item_id: int
    quantity: int
    menu_item: MenuItemResponse
    addons: List[AddonResponse] = []


class OrderResponse(CamelModel):
    """Response schema for a single order."""
    id: int
    restaurant_id: int
    branch_id: int
    user_id: int
    customer_name: str
    status: str
    payment_status: PaymentStatus
    payment_intent_id: Optional[str] = None
    delivery_type: DeliveryType
    subtotal: float
    order_discount: float
    platform_fee: float
    payment_processing_fee: float
    delivery_charge: float
    delivery_discount: float
    total: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    order_items: List[OrderItemResponse] = []
    branch: Optional[BranchResponse] = None


class OrderCreateResponse(CamelModel):
    """Response after successfully creating an order."""
    order: OrderResponse
    client_secret: str
    payment_intent_id: str


class WebhookResponse(CamelModel):
    received: bool = True
    handled: bool = False


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    details: Optional[Any] = None
    stack: Optional[str] = None


class HealthResponse(CamelModel):
    """Health check response."""
    status: str
    database: str
    payment_service: str
    environment: str
    timestamp: datetime
