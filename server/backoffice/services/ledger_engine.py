"""
Ledger transaction engine.

Pure functions that turn a pair of booking snapshots (before and after a
change) into the totals to store, the signed balance movements to post and
the history entries to append. Nothing here touches the database.

Balance semantics:
    - Agent balance is receivable debt: a sale increases it, a customer
      refund decreases it.
    - Issuing partner balance is prepaid credit: ticket cost decreases it,
      a partner refund increases it.

Every booking state maps to a set of ledger positions. Each transition posts
exactly the difference between the previous and the new positions, so the
entries posted for a booking always sum to the positions of its latest state.
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import UUID

from ..models.enums import BILLABLE_STATUSES, HistoryAction, LedgerKind, TicketStatus, TransactionType
from ..schemas.ledger import (
    BookingSnapshot,
    BookingTotals,
    HistoryEntry,
    LedgerEntry,
    LedgerPlan,
    PassengerLine,
)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class LedgerComponent(str, Enum):
    """Part of a booking's balance effect."""
    ISSUANCE = "ISSUANCE"
    REFUND = "REFUND"


PositionKey = tuple[LedgerKind, UUID, LedgerComponent]


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def effective_ticket_status(line: PassengerLine, booking_status: TicketStatus) -> TicketStatus:
    """Line override when set, otherwise the booking status."""
    return line.ticket_status or booking_status


def is_billable(snapshot: BookingSnapshot | None) -> bool:
    """Whether a booking in this state moves ledger balances."""
    return (
        snapshot is not None
        and not snapshot.is_deleted
        and snapshot.ticket_status in BILLABLE_STATUSES
    )


def compute_totals(snapshot: BookingSnapshot) -> BookingTotals:
    """
    Compute booking totals from its ticket lines.

    VOID tickets contribute nothing. Refund amounts count only for tickets
    whose effective status is REFUNDED.
    """
    total_cost = ZERO
    total_sale = ZERO
    refund_partner = ZERO
    refund_customer = ZERO
    ticket_count = 0

    for line in snapshot.lines:
        status = effective_ticket_status(line, snapshot.ticket_status)
        if status == TicketStatus.VOID:
            continue

        ticket_count += 1
        total_cost += line.cost_price
        total_sale += line.sale_price

        if status == TicketStatus.REFUNDED:
            refund_partner += line.refund_amount_partner
            refund_customer += line.refund_amount_customer

    net_cost = total_cost - refund_partner
    net_sale = total_sale - refund_customer

    return BookingTotals(
        total_cost=_money(total_cost),
        total_sale=_money(total_sale),
        refund_partner_total=_money(refund_partner),
        refund_customer_total=_money(refund_customer),
        net_cost=_money(net_cost),
        net_sale=_money(net_sale),
        profit=_money(net_sale - net_cost),
        ticket_count=ticket_count,
    )


def ledger_positions(snapshot: BookingSnapshot | None) -> dict[PositionKey, Decimal]:
    """Balance effect a booking in this state should have, keyed by (ledger, entity, component)."""
    if not is_billable(snapshot):
        return {}

    totals = compute_totals(snapshot)
    candidates: list[tuple[PositionKey, Decimal]] = []

    if snapshot.issued_partner_id is not None:
        partner = snapshot.issued_partner_id
        candidates.append(((LedgerKind.ISSUED_PARTNER, partner, LedgerComponent.ISSUANCE), -totals.total_cost))
        candidates.append(((LedgerKind.ISSUED_PARTNER, partner, LedgerComponent.REFUND), totals.refund_partner_total))

    if snapshot.agent_id is not None:
        agent = snapshot.agent_id
        candidates.append(((LedgerKind.AGENT, agent, LedgerComponent.ISSUANCE), totals.total_sale))
        candidates.append(((LedgerKind.AGENT, agent, LedgerComponent.REFUND), -totals.refund_customer_total))

    return {key: amount for key, amount in candidates if amount != 0}


def _refund_direction(ledger: LedgerKind) -> int:
    # Partner refunds restore credit, customer refunds reduce agent debt
    return 1 if ledger == LedgerKind.ISSUED_PARTNER else -1


def _component(positions: dict[PositionKey, Decimal], component: LedgerComponent) -> dict[tuple[LedgerKind, UUID], Decimal]:
    return {
        (ledger, entity_id): amount
        for (ledger, entity_id, part), amount in positions.items()
        if part == component
    }


def _ordered(keys: Iterable[tuple[LedgerKind, UUID]]) -> list[tuple[LedgerKind, UUID]]:
    # Partner first, then agent; stable across runs
    return sorted(keys, key=lambda key: (key[0] != LedgerKind.ISSUED_PARTNER, str(key[1])))


def _issuance_entries(
    previous: dict[tuple[LedgerKind, UUID], Decimal],
    new: dict[tuple[LedgerKind, UUID], Decimal],
    reversal_description: str,
    charge_description: str,
) -> list[LedgerEntry]:
    """Reverse and recharge every issuance position whose amount changed."""
    entries: list[LedgerEntry] = []

    for ledger, entity_id in _ordered(set(previous) | set(new)):
        old_amount = previous.get((ledger, entity_id), ZERO)
        new_amount = new.get((ledger, entity_id), ZERO)
        if old_amount == new_amount:
            continue

        if old_amount != 0:
            entries.append(LedgerEntry(
                ledger=ledger,
                entity_id=entity_id,
                amount=-old_amount,
                transaction_type=TransactionType.REFUND,
                description=reversal_description,
            ))
        if new_amount != 0:
            entries.append(LedgerEntry(
                ledger=ledger,
                entity_id=entity_id,
                amount=new_amount,
                transaction_type=TransactionType.BOOKING_DEDUCTION,
                description=charge_description,
            ))

    return entries


def _refund_entries(
    previous: dict[tuple[LedgerKind, UUID], Decimal],
    new: dict[tuple[LedgerKind, UUID], Decimal],
    refund_description: str,
    adjustment_description: str,
) -> list[LedgerEntry]:
    """Post only the refund delta per entity."""
    entries: list[LedgerEntry] = []

    for ledger, entity_id in _ordered(set(previous) | set(new)):
        delta = new.get((ledger, entity_id), ZERO) - previous.get((ledger, entity_id), ZERO)
        if delta == 0:
            continue

        in_refund_direction = (delta > 0) == (_refund_direction(ledger) > 0)
        entries.append(LedgerEntry(
            ledger=ledger,
            entity_id=entity_id,
            amount=delta,
            transaction_type=TransactionType.REFUND if in_refund_direction else TransactionType.ADJUSTMENT,
            description=refund_description if in_refund_direction else adjustment_description,
        ))

    return entries


def _describe_changes(previous: BookingSnapshot, new: BookingSnapshot) -> str | None:
    """Human-readable summary of total and assignment changes."""
    before = compute_totals(previous)
    after = compute_totals(new)
    changes: list[str] = []

    if previous.ticket_status != new.ticket_status:
        changes.append(f"status {previous.ticket_status.value} -> {new.ticket_status.value}")
    for field in ("total_sale", "total_cost", "refund_customer_total", "refund_partner_total"):
        old_value = getattr(before, field)
        new_value = getattr(after, field)
        if old_value != new_value:
            changes.append(f"{field} {old_value} -> {new_value}")
    if previous.agent_id != new.agent_id:
        changes.append(f"agent {previous.agent_id} -> {new.agent_id}")
    if previous.issued_partner_id != new.issued_partner_id:
        changes.append(f"issued partner {previous.issued_partner_id} -> {new.issued_partner_id}")
    if before.ticket_count != after.ticket_count:
        changes.append(f"tickets {before.ticket_count} -> {after.ticket_count}")

    return "; ".join(changes) if changes else None


def plan_transition(
    previous: BookingSnapshot | None,
    new: BookingSnapshot | None,
    reissue: bool = False,
) -> LedgerPlan:
    """
    Plan the ledger effect of moving a booking from one state to another.

    Args:
        previous: State before the change, None when the booking is being created
        new: State after the change, None (or deleted) when the booking is being removed
        reissue: Creation of a reissue child booking

    Returns:
        LedgerPlan with the new totals, entries to post and history to append
    """
    if previous is None and new is None:
        raise ValueError("plan_transition needs at least one snapshot")

    old_positions = ledger_positions(previous)
    new_positions = ledger_positions(new)

    if previous is None:
        pnr = new.pnr
        totals = compute_totals(new)
        entries = _issuance_entries(
            {}, _component(new_positions, LedgerComponent.ISSUANCE),
            reversal_description=f"Booking issuance for PNR {pnr}",
            charge_description=f"Booking issuance for PNR {pnr}",
        ) + _refund_entries(
            {}, _component(new_positions, LedgerComponent.REFUND),
            refund_description=f"Refund for PNR {pnr}",
            adjustment_description=f"Refund adjustment for PNR {pnr}",
        )
        history = HistoryEntry(
            action=HistoryAction.REISSUED if reissue else HistoryAction.CREATED,
            previous_status=None,
            new_status=new.ticket_status,
            details=(
                f"{'Reissue' if reissue else 'Booking'} created with {totals.ticket_count} ticket(s), "
                f"sale {totals.total_sale}, cost {totals.total_cost}"
            ),
        )
        return LedgerPlan(totals=totals, entries=entries, history=[history])

    if new is None or new.is_deleted:
        pnr = previous.pnr
        description = f"Booking deletion reversal for PNR {pnr}"
        entries: list[LedgerEntry] = []
        for component, transaction_type in (
            (LedgerComponent.ISSUANCE, TransactionType.REFUND),
            (LedgerComponent.REFUND, TransactionType.ADJUSTMENT),
        ):
            positions = _component(old_positions, component)
            for ledger, entity_id in _ordered(positions):
                entries.append(LedgerEntry(
                    ledger=ledger,
                    entity_id=entity_id,
                    amount=-positions[(ledger, entity_id)],
                    transaction_type=transaction_type,
                    description=description,
                ))
        history = HistoryEntry(
            action=HistoryAction.DELETED,
            previous_status=previous.ticket_status,
            new_status=previous.ticket_status,
            details=f"Booking {pnr} deleted",
        )
        totals = compute_totals(new if new is not None else previous)
        return LedgerPlan(totals=totals, entries=entries, history=[history])

    pnr = new.pnr
    entries = _issuance_entries(
        _component(old_positions, LedgerComponent.ISSUANCE),
        _component(new_positions, LedgerComponent.ISSUANCE),
        reversal_description=f"Update Reversal for PNR {pnr}",
        charge_description=f"Booking issuance for PNR {pnr}",
    ) + _refund_entries(
        _component(old_positions, LedgerComponent.REFUND),
        _component(new_positions, LedgerComponent.REFUND),
        refund_description=f"Refund for PNR {pnr}",
        adjustment_description=f"Refund adjustment for PNR {pnr}",
    )

    if previous.ticket_status != new.ticket_status:
        action = HistoryAction.REFUNDED if new.ticket_status == TicketStatus.REFUNDED else HistoryAction.STATUS_CHANGED
    else:
        action = HistoryAction.UPDATED

    history = HistoryEntry(
        action=action,
        previous_status=previous.ticket_status,
        new_status=new.ticket_status,
        details=_describe_changes(previous, new),
    )
    return LedgerPlan(totals=compute_totals(new), entries=entries, history=[history])


def plan_create(snapshot: BookingSnapshot) -> LedgerPlan:
    return plan_transition(None, snapshot)


def plan_update(previous: BookingSnapshot, new: BookingSnapshot) -> LedgerPlan:
    return plan_transition(previous, new)


def plan_delete(previous: BookingSnapshot) -> LedgerPlan:
    return plan_transition(previous, None)


def plan_reissue(child: BookingSnapshot) -> LedgerPlan:
    """Plan the creation of a reissue child; it is charged for its own lines."""
    return plan_transition(None, child, reissue=True)


def net_effect(entries: Iterable[LedgerEntry]) -> dict[tuple[LedgerKind, UUID], Decimal]:
    """Sum posted entries per (ledger, entity)."""
    totals: dict[tuple[LedgerKind, UUID], Decimal] = {}
    for entry in entries:
        key = (entry.ledger, entry.entity_id)
        totals[key] = totals.get(key, ZERO) + entry.amount
    return {key: amount for key, amount in totals.items() if amount != 0}


def position_totals(snapshot: BookingSnapshot | None) -> dict[tuple[LedgerKind, UUID], Decimal]:
    """Positions of a state summed per (ledger, entity)."""
    totals: dict[tuple[LedgerKind, UUID], Decimal] = {}
    for (ledger, entity_id, _), amount in ledger_positions(snapshot).items():
        totals[(ledger, entity_id)] = totals.get((ledger, entity_id), ZERO) + amount
    return {key: amount for key, amount in totals.items() if amount != 0}
