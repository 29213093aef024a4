from __future__ import annotations

from notify_relay.api.routes.health import router as health_router
from notify_relay.api.routes.notifications import router as notifications_router

__all__ = ["health_router", "notifications_router"]
