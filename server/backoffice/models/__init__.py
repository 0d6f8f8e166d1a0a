"""Models module exporting all database models."""

from .booking import Booking, BookingHistory, BookingPassenger
from .entity import Agent, IssuedPartner
from .enums import (
    BILLABLE_STATUSES,
    BookingSource,
    Currency,
    HistoryAction,
    LedgerKind,
    PassengerType,
    TicketStatus,
    TransactionType,
)
from .idempotency import IdempotencyRecord
from .passenger import Passenger
from .transaction import CreditTransaction

__all__ = [
    # Ledger entities
    "Agent",
    "IssuedPartner",
    "CreditTransaction",

    # Booking entities
    "Booking",
    "BookingPassenger",
    "BookingHistory",

    # Passenger directory
    "Passenger",

    # Idempotency entity
    "IdempotencyRecord",

    # Enumerations
    "BILLABLE_STATUSES",
    "BookingSource",
    "Currency",
    "HistoryAction",
    "LedgerKind",
    "PassengerType",
    "TicketStatus",
    "TransactionType",
]
