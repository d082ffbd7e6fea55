from .routes_events import router as events_router
from .routes_public import router as public_router

__all__ = ["events_router", "public_router"]
