"""FastAPI routers package."""

from .analytics import router as analytics_router
from .booking import router as booking_router
from .entity import router as entity_router
from .health import router as health_router
from .ledger import router as ledger_router
from .passenger import router as passenger_router

__all__ = [
    "analytics_router",
    "booking_router",
    "entity_router",
    "health_router",
    "ledger_router",
    "passenger_router",
]
