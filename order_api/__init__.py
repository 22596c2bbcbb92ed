"""
                Food Ordering API

Order-management backend for a multi-branch restaurant storefront:
order creation with menu and add-on validation, Stripe payment
intents, and role-scoped order retrieval and status updates.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
