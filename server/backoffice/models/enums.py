"""Enumerations shared by models, schemas and the ledger engine."""

from enum import Enum


class TicketStatus(str, Enum):
    """Ticket status of a booking or of a single ticket line."""
    PENDING = "PENDING"
    ISSUED = "ISSUED"
    REISSUE = "REISSUE"
    VOID = "VOID"
    REFUNDED = "REFUNDED"
    CANCELED = "CANCELED"


# Statuses whose tickets were issued and therefore move ledger balances
BILLABLE_STATUSES = frozenset({TicketStatus.ISSUED, TicketStatus.REISSUE, TicketStatus.REFUNDED})


class TransactionType(str, Enum):
    """Credit transaction type."""
    TOPUP = "TOPUP"
    BOOKING_DEDUCTION = "BOOKING_DEDUCTION"
    REFUND = "REFUND"
    ADJUSTMENT = "ADJUSTMENT"


class LedgerKind(str, Enum):
    """Which running balance a transaction belongs to."""
    AGENT = "AGENT"
    ISSUED_PARTNER = "ISSUED_PARTNER"


class HistoryAction(str, Enum):
    """Booking history action."""
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    REFUNDED = "REFUNDED"
    REISSUED = "REISSUED"
    DELETED = "DELETED"


class PassengerType(str, Enum):
    """Passenger age category."""
    ADULT = "ADULT"
    CHILD = "CHILD"
    INFANT = "INFANT"


class BookingSource(str, Enum):
    """Channel the booking came through."""
    AGENT = "AGENT"
    DIRECT = "DIRECT"


class Currency(str, Enum):
    """Currencies the agency sells in."""
    EUR = "EUR"
    LKR = "LKR"
