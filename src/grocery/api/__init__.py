"""Grocery fulfillment API package."""

from grocery.api.errors import register_exception_handlers
from grocery.api.routes import order_router, personnel_router, queue_router

__all__ = ["order_router", "personnel_router", "queue_router", "register_exception_handlers"]
