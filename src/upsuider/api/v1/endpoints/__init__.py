"""API endpoint modules for version 1."""

from .eventsub import router as eventsub_router
from .salts import router as salts_router
from .transactions import router as transactions_router
from .viewers import router as viewers_router

__all__ = ["eventsub_router", "salts_router", "transactions_router", "viewers_router"]
