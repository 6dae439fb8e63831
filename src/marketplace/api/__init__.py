"""Marketplace API package."""

from marketplace.api.routes import order_router, register_authorization_handler

__all__ = ["order_router", "register_authorization_handler"]
