"""Version 1 API endpoints."""

from .endpoints import eventsub_router, salts_router, transactions_router, viewers_router

__all__ = ["eventsub_router", "salts_router", "transactions_router", "viewers_router"]
