"""
                        Services Module

Business logic behind the HTTP layer.

Services:
    - orders: order retrieval, creation, status updates, payment events
    - pricing: server-side order totals
    - payment: Stripe / mock payment gateway
"""

from order_api.services.orders import OrderService

__all__ = ["OrderService"]
