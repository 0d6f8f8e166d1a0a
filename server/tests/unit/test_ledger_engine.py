"""Unit tests for the pure ledger engine."""

from decimal import Decimal
from uuid import uuid4

import pytest

from backoffice.models.enums import HistoryAction, LedgerKind, TicketStatus, TransactionType
from backoffice.schemas.ledger import BookingSnapshot, PassengerLine
from backoffice.services import ledger_engine

AGENT_ID = uuid4()
OTHER_AGENT_ID = uuid4()
PARTNER_ID = uuid4()


def snapshot(status=TicketStatus.ISSUED, lines=None, **overrides):
    data = {
        "pnr": "ABC123",
        "ticket_status": status,
        "agent_id": AGENT_ID,
        "issued_partner_id": PARTNER_ID,
        "lines": lines if lines is not None else [line()],
    }
    data.update(overrides)
    return BookingSnapshot(**data)


def line(cost="400.00", sale="500.00", refund_partner="0", refund_customer="0", status=None):
    return PassengerLine(
        ticket_status=status,
        cost_price=Decimal(cost),
        sale_price=Decimal(sale),
        refund_amount_partner=Decimal(refund_partner),
        refund_amount_customer=Decimal(refund_customer),
    )


def entries_as_tuples(plan):
    return [(e.ledger, e.entity_id, e.amount, e.transaction_type) for e in plan.entries]


def test_compute_totals_skips_void_tickets():
    """VOID tickets add nothing to totals or ticket count."""
    totals = ledger_engine.compute_totals(snapshot(lines=[
        line(),
        line(cost="100", sale="150", status=TicketStatus.VOID),
    ]))

    assert totals.total_cost == Decimal("400.00")
    assert totals.total_sale == Decimal("500.00")
    assert totals.profit == Decimal("100.00")
    assert totals.ticket_count == 1


def test_compute_totals_counts_refunds_only_for_refunded_tickets():
    """Refund amounts on non-refunded tickets are ignored."""
    totals = ledger_engine.compute_totals(snapshot(lines=[
        line(refund_partner="300", refund_customer="350", status=TicketStatus.REFUNDED),
        line(refund_partner="999", refund_customer="999"),
    ]))

    assert totals.refund_partner_total == Decimal("300.00")
    assert totals.refund_customer_total == Decimal("350.00")
    assert totals.net_cost == Decimal("500.00")
    assert totals.net_sale == Decimal("650.00")
    assert totals.profit == Decimal("150.00")


def test_plan_create_issued_booking():
    """An issued booking charges the partner its cost and the agent its sale."""
    plan = ledger_engine.plan_create(snapshot())

    assert entries_as_tuples(plan) == [
        (LedgerKind.ISSUED_PARTNER, PARTNER_ID, Decimal("-400.00"), TransactionType.BOOKING_DEDUCTION),
        (LedgerKind.AGENT, AGENT_ID, Decimal("500.00"), TransactionType.BOOKING_DEDUCTION),
    ]
    assert all(entry.description == "Booking issuance for PNR ABC123" for entry in plan.entries)
    assert plan.history[0].action == HistoryAction.CREATED
    assert plan.history[0].new_status == TicketStatus.ISSUED


@pytest.mark.parametrize("status", [TicketStatus.PENDING, TicketStatus.VOID, TicketStatus.CANCELED])
def test_plan_create_non_billable_booking_posts_nothing(status):
    """Bookings that were never issued do not move balances."""
    plan = ledger_engine.plan_create(snapshot(status=status))

    assert plan.entries == []
    assert plan.history[0].action == HistoryAction.CREATED


def test_plan_create_without_partner_only_charges_agent():
    plan = ledger_engine.plan_create(snapshot(issued_partner_id=None))

    assert [(e.ledger, e.amount) for e in plan.entries] == [(LedgerKind.AGENT, Decimal("500.00"))]


def test_plan_update_price_change_reverses_and_recharges():
    """A changed sale reverses the old charge and posts the new one."""
    before = snapshot()
    after = snapshot(lines=[line(sale="550.00")])

    plan = ledger_engine.plan_update(before, after)

    assert entries_as_tuples(plan) == [
        (LedgerKind.AGENT, AGENT_ID, Decimal("-500.00"), TransactionType.REFUND),
        (LedgerKind.AGENT, AGENT_ID, Decimal("550.00"), TransactionType.BOOKING_DEDUCTION),
    ]
    assert plan.entries[0].description == "Update Reversal for PNR ABC123"
    assert plan.history[0].action == HistoryAction.UPDATED
    assert "total_sale 500.00 -> 550.00" in plan.history[0].details


def test_plan_update_unchanged_booking_posts_nothing():
    """Re-sending the same state is a no-op for the ledger."""
    plan = ledger_engine.plan_update(snapshot(), snapshot())

    assert plan.entries == []
    assert plan.history[0].action == HistoryAction.UPDATED
    assert plan.history[0].details is None


def test_plan_update_refund_posts_only_refund_delta():
    """Refunding keeps the issuance charge and credits the refunds."""
    before = snapshot()
    after = snapshot(
        status=TicketStatus.REFUNDED,
        lines=[line(refund_partner="300.00", refund_customer="350.00")],
    )

    plan = ledger_engine.plan_update(before, after)

    assert entries_as_tuples(plan) == [
        (LedgerKind.ISSUED_PARTNER, PARTNER_ID, Decimal("300.00"), TransactionType.REFUND),
        (LedgerKind.AGENT, AGENT_ID, Decimal("-350.00"), TransactionType.REFUND),
    ]
    assert plan.history[0].action == HistoryAction.REFUNDED
    assert plan.history[0].previous_status == TicketStatus.ISSUED


def test_plan_update_refund_reduction_is_adjustment():
    """Lowering a refund moves balances back as an adjustment."""
    before = snapshot(
        status=TicketStatus.REFUNDED,
        lines=[line(refund_partner="300.00", refund_customer="350.00")],
    )
    after = snapshot(
        status=TicketStatus.REFUNDED,
        lines=[line(refund_partner="300.00", refund_customer="300.00")],
    )

    plan = ledger_engine.plan_update(before, after)

    assert entries_as_tuples(plan) == [
        (LedgerKind.AGENT, AGENT_ID, Decimal("50.00"), TransactionType.ADJUSTMENT),
    ]


def test_plan_update_void_reverses_issuance():
    plan = ledger_engine.plan_update(snapshot(), snapshot(status=TicketStatus.VOID))

    assert entries_as_tuples(plan) == [
        (LedgerKind.ISSUED_PARTNER, PARTNER_ID, Decimal("400.00"), TransactionType.REFUND),
        (LedgerKind.AGENT, AGENT_ID, Decimal("-500.00"), TransactionType.REFUND),
    ]
    assert plan.history[0].action == HistoryAction.STATUS_CHANGED


def test_plan_update_pending_to_issued_charges():
    plan = ledger_engine.plan_update(snapshot(status=TicketStatus.PENDING), snapshot())

    assert [e.transaction_type for e in plan.entries] == [
        TransactionType.BOOKING_DEDUCTION,
        TransactionType.BOOKING_DEDUCTION,
    ]


def test_plan_update_agent_change_moves_charge():
    """Reassigning the agent reverses on the old agent and charges the new one."""
    plan = ledger_engine.plan_update(snapshot(), snapshot(agent_id=OTHER_AGENT_ID))

    effect = ledger_engine.net_effect(plan.entries)
    assert effect == {
        (LedgerKind.AGENT, AGENT_ID): Decimal("-500.00"),
        (LedgerKind.AGENT, OTHER_AGENT_ID): Decimal("500.00"),
    }
    assert "agent" in plan.history[0].details


def test_plan_delete_refunded_booking_reverses_everything():
    """Deleting reverses issuance as REFUND and refunds as ADJUSTMENT."""
    before = snapshot(
        status=TicketStatus.REFUNDED,
        lines=[line(refund_partner="300.00", refund_customer="350.00")],
    )

    plan = ledger_engine.plan_delete(before)

    assert entries_as_tuples(plan) == [
        (LedgerKind.ISSUED_PARTNER, PARTNER_ID, Decimal("400.00"), TransactionType.REFUND),
        (LedgerKind.AGENT, AGENT_ID, Decimal("-500.00"), TransactionType.REFUND),
        (LedgerKind.ISSUED_PARTNER, PARTNER_ID, Decimal("-300.00"), TransactionType.ADJUSTMENT),
        (LedgerKind.AGENT, AGENT_ID, Decimal("350.00"), TransactionType.ADJUSTMENT),
    ]
    assert all(e.description == "Booking deletion reversal for PNR ABC123" for e in plan.entries)
    assert plan.history[0].action == HistoryAction.DELETED


def test_plan_delete_pending_booking_posts_nothing():
    plan = ledger_engine.plan_delete(snapshot(status=TicketStatus.PENDING))

    assert plan.entries == []
    assert plan.history[0].action == HistoryAction.DELETED


def test_plan_reissue_charges_child_lines():
    plan = ledger_engine.plan_reissue(snapshot(status=TicketStatus.REISSUE, lines=[line(cost="50", sale="80")]))

    assert ledger_engine.net_effect(plan.entries) == {
        (LedgerKind.ISSUED_PARTNER, PARTNER_ID): Decimal("-50.00"),
        (LedgerKind.AGENT, AGENT_ID): Decimal("80.00"),
    }
    assert plan.history[0].action == HistoryAction.REISSUED


def test_plan_transition_requires_a_snapshot():
    with pytest.raises(ValueError):
        ledger_engine.plan_transition(None, None)


def test_entries_sum_to_latest_positions():
    """Posting every plan in sequence leaves exactly the positions of the last state."""
    states = [
        snapshot(status=TicketStatus.PENDING),
        snapshot(),
        snapshot(lines=[line(sale="620.00"), line(cost="100", sale="90")]),
        snapshot(
            status=TicketStatus.REFUNDED,
            lines=[line(sale="620.00", refund_partner="200", refund_customer="250")],
            agent_id=OTHER_AGENT_ID,
        ),
    ]

    posted = list(ledger_engine.plan_create(states[0]).entries)
    for previous, new in zip(states, states[1:]):
        posted.extend(ledger_engine.plan_update(previous, new).entries)

    assert ledger_engine.net_effect(posted) == ledger_engine.position_totals(states[-1])

    posted.extend(ledger_engine.plan_delete(states[-1]).entries)
    assert ledger_engine.net_effect(posted) == {}
