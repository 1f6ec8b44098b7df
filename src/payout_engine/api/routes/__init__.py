"""API routes."""

from payout_engine.api.routes.advances import router as advances_router
from payout_engine.api.routes.health import router as health_router
from payout_engine.api.routes.settlements import router as settlements_router

__all__ = ["advances_router", "health_router", "settlements_router"]
