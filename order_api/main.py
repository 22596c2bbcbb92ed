"""
FastAPI Application Entry Point

Food Ordering API - order management for a multi-branch restaurant
storefront. Uses the mock payment gateway in development and Stripe in
staging/production.

Endpoints:
    - GET /order: List orders visible to the caller
    - GET /order/{order_id}: Get a single order
    - POST /order: Create an order and its payment intent
    - PUT /order: Update an order's status
    - POST /webhook/stripe: Payment provider events
    - GET /health: System health check
"""

import logging
import traceback
from datetime import datetime
from typing import Any, List, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Query, Request, Header
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from order_api.auth import Identity, get_current_identity, require_identity
from order_api.core.config import get_settings, setup_logging
from order_api.core.errors import OrderAPIError, ProcessingFailure, Unauthenticated, ValidationFailed
from order_api.database import Database, get_db
from order_api.schemas import (
    OrderCreate,
    OrderStatusUpdate,
    OrderResponse,
    OrderCreateResponse,
    WebhookResponse,
    ErrorResponse,
    HealthResponse,
)
from order_api.services.orders import OrderService
from order_api.services.payment import BasePaymentService, get_payment_service

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.

    The Database is built once here and shared by every request.
    """
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    if getattr(app.state, "database", None) is None:
        app.state.database = Database(settings.database_url, echo=settings.database_echo)
    await app.state.database.create_all()
    logger.info("✅ Database initialized")

    payment_service = get_payment_service()
    logger.info(f"✅ Payment Service: {payment_service.provider_name}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("✅ Application ready!")

    yield

    logger.info("Shutting down...")
    await app.state.database.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Order management for a restaurant storefront: order creation with "
        "menu validation and payment intents, role-scoped order retrieval "
        "and status updates."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_order_service(
    db: AsyncSession = Depends(get_db),
    payment_service: BasePaymentService = Depends(get_payment_service),
) -> OrderService:
    return OrderService(db, payment_service, settings)


ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    payment_service: BasePaymentService = Depends(get_payment_service),
) -> HealthResponse:
    """Verify the database and payment gateway are reachable."""
    db_status = "healthy"
    try:
        await db.execute(select(1))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    payment_status = "healthy" if await payment_service.health_check() else "unhealthy"

    overall = "operational" if db_status == payment_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        payment_service=payment_status,
        environment=settings.env_mode.value,
        timestamp=datetime.now(),
    )


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.get(
    "/order",
    response_model=List[OrderResponse],
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    restaurant_id: Optional[int] = Query(None, alias="restaurantId"),
    branch_manager_id: Optional[int] = Query(None, alias="branchManagerId"),
    identity: Identity = Depends(require_identity),
    service: OrderService = Depends(get_order_service),
) -> List[OrderResponse]:
    """
    Orders visible to the caller, newest first.

    Restaurant admins pass ``restaurantId`` for their restaurant, branch
    managers pass their own id as ``branchManagerId``; everyone else gets
    the orders they placed.
    """
    orders = await service.list_orders(identity, restaurant_id, branch_manager_id)
    return [OrderResponse.model_validate(order) for order in orders]


@app.get(
    "/order/{order_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(
    order_id: int,
    identity: Identity = Depends(require_identity),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Get a specific order by ID."""
    order = await service.get_order(identity, order_id)
    return OrderResponse.model_validate(order)


@app.post(
    "/order",
    response_model=OrderCreateResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Create Order",
)
async def create_order(
    order_data: OrderCreate,
    identity: Identity = Depends(require_identity),
    service: OrderService = Depends(get_order_service),
) -> OrderCreateResponse:
    """
    Create a new order for a branch and open a payment intent for its total.

    The returned ``clientSecret`` is used by the browser to confirm payment.
    """
    logger.info(f"Creating order for user #{identity.id} at branch {order_data.branch_id}")

    order, intent = await service.create_order(identity, order_data)

    return OrderCreateResponse(
        order=OrderResponse.model_validate(order),
        client_secret=intent.client_secret,
        payment_intent_id=intent.payment_intent_id,
    )


@app.put(
    "/order",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Update Order Status",
)
async def update_order_status(
    update: OrderStatusUpdate,
    identity: Identity = Depends(require_identity),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Set an order's status. Restricted to super admins and the order's restaurant staff."""
    order = await service.update_status(identity, update.order_id, update.status)
    return OrderResponse.model_validate(order)


# =============================================================================
# PAYMENT WEBHOOK
# =============================================================================

@app.post(
    "/webhook/stripe",
    response_model=WebhookResponse,
    responses={400: {"model": ErrorResponse}},
    tags=["Payments"],
    summary="Payment Provider Webhook",
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    payment_service: BasePaymentService = Depends(get_payment_service),
    service: OrderService = Depends(get_order_service),
) -> WebhookResponse:
    """
    Receive payment intent events.

    Configure this URL in the Stripe dashboard:
        https://your-domain.com/webhook/stripe
    """
    payload = await request.body()
    event = await payment_service.verify_webhook(payload, stripe_signature)
    if event is None:
        raise ValidationFailed("Invalid webhook payload")

    logger.info(f"Payment webhook received: {event.get('type', 'unknown')}")
    handled = await service.apply_payment_event(event)
    return WebhookResponse(received=True, handled=handled)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def _stack(exc: Optional[BaseException]) -> Optional[str]:
    """Stack trace for error bodies; never exposed in production."""
    if exc is None or settings.is_production:
        return None
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


@app.exception_handler(OrderAPIError)
async def order_api_error_handler(request: Request, exc: OrderAPIError) -> JSONResponse:
    content: dict[str, Any] = exc.to_dict()
    if isinstance(exc, ProcessingFailure):
        stack = _stack(exc.cause or exc)
        if stack:
            content["stack"] = stack
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(content))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Bodies are parsed before dependencies run, so check the caller first
    if await get_current_identity(request) is None:
        error = Unauthenticated()
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request",
            "details": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    content: dict[str, Any] = {
        "error": "Internal Server Error",
        "details": "An unexpected error occurred" if settings.is_production else str(exc),
    }
    stack = _stack(exc)
    if stack:
        content["stack"] = stack
    return JSONResponse(status_code=500, content=content)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "order_api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
