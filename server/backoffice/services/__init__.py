"""Service layer package."""

from .analytics_service import AnalyticsService
from .booking_service import BookingService
from .entity_service import EntityService
from .idempotency_service import IdempotencyService
from .ledger_service import LedgerService
from .passenger_service import PassengerService

__all__ = [
    "AnalyticsService",
    "BookingService",
    "EntityService",
    "IdempotencyService",
    "LedgerService",
    "PassengerService",
]
