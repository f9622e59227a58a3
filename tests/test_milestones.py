"""Tests for milestone creation, escalation and the blocking graph."""

from datetime import date, timedelta

import pytest

from ticket_workflow.context import WorkflowContext
from ticket_workflow.exceptions import AssignmentError, MilestoneError
from ticket_workflow.history import undo_change_status
from ticket_workflow.milestones import create_milestone, refresh_view_data
from ticket_workflow.models import (
    ActionType,
    ExpertiseArea,
    MilestoneStatus,
    Priority,
    Role,
    Seniority,
    TicketType,
    User,
)
from ticket_workflow.tickets import assign_ticket, change_status, report_ticket

START = date(2026, 1, 1)


def _make_context():
    """Manager alice, senior backend developer bob, reporter carol."""
    users = [
        User("alice", "alice@example.com", Role.MANAGER),
        User(
            "bob",
            "bob@example.com",
            Role.DEVELOPER,
            expertise_area=ExpertiseArea.BACKEND,
            seniority=Seniority.SENIOR,
        ),
        User("carol", "carol@example.com", Role.REPORTER),
    ]
    ctx = WorkflowContext(users)
    ctx.advance_clock(START)
    return ctx


def _report(ctx, priority=Priority.LOW, title="Login fails"):
    return report_ticket(
        ctx,
        "carol",
        TicketType.BUG,
        title,
        priority,
        ExpertiseArea.BACKEND,
        reported_by="carol",
    )


def _close(ctx, ticket_id):
    assign_ticket(ctx, "bob", ticket_id)
    change_status(ctx, "bob", ticket_id)
    change_status(ctx, "bob", ticket_id)


def _notifications(ctx, username, fragment):
    return [n for n in ctx.users[username].notifications if fragment in n]


class TestCreateMilestone:
    """Tests for create_milestone."""

    def test_registers_milestone_and_resolves_tickets(self):
        ctx = _make_context()
        ticket = _report(ctx)

        milestone = create_milestone(
            ctx, "alice", "M1", date(2026, 2, 1), ticket_ids=[ticket.id], assigned_devs=["bob"]
        )

        assert ctx.find_milestone("M1") is milestone
        assert milestone.tickets == [ticket]
        assert milestone.created_at == START
        assert milestone.last_priority_increase == START
        assert milestone.status == MilestoneStatus.ACTIVE

    def test_notifies_assigned_devs(self):
        ctx = _make_context()
        create_milestone(ctx, "alice", "M1", date(2026, 2, 1), assigned_devs=["bob"])

        assert ctx.users["bob"].notifications == [
            "New milestone M1 has been created with due date 2026-02-01."
        ]

    def test_records_added_to_milestone_history(self):
        ctx = _make_context()
        ticket = _report(ctx)
        create_milestone(ctx, "alice", "M1", date(2026, 2, 1), ticket_ids=[ticket.id])

        entry = ticket.history[-1]
        assert entry.action == ActionType.ADDED_TO_MILESTONE
        assert entry.milestone == "M1"
        assert entry.by == "alice"

    def test_skips_unknown_ticket_ids(self):
        ctx = _make_context()
        milestone = create_milestone(ctx, "alice", "M1", date(2026, 2, 1), ticket_ids=[42])

        assert milestone.ticket_ids == [42]
        assert milestone.tickets == []

    def test_rejects_ticket_already_in_milestone(self):
        ctx = _make_context()
        ticket = _report(ctx)
        create_milestone(ctx, "alice", "M1", date(2026, 2, 1), ticket_ids=[ticket.id])

        with pytest.raises(MilestoneError, match="Tickets 0 already assigned to milestone M1."):
            create_milestone(ctx, "alice", "M2", date(2026, 2, 1), ticket_ids=[ticket.id])

        assert ctx.find_milestone("M2") is None

    def test_rejects_duplicate_name(self):
        ctx = _make_context()
        create_milestone(ctx, "alice", "M1", date(2026, 2, 1))

        with pytest.raises(MilestoneError, match="already exists"):
            create_milestone(ctx, "alice", "M1", date(2026, 3, 1))

    def test_blocks_existing_targets_only(self):
        ctx = _make_context()
        target = create_milestone(ctx, "alice", "M2", date(2026, 2, 1))

        create_milestone(ctx, "alice", "M1", date(2026, 2, 1), blocking_for=["M2", "M3"])
        later = create_milestone(ctx, "alice", "M3", date(2026, 2, 1))

        assert target.is_blocked
        assert target.was_blocked_before_due
        assert not later.is_blocked


class TestEscalation:
    """Tests for the periodic priority escalation."""

    def test_escalates_every_three_days(self):
        ctx = _make_context()
        ticket = _report(ctx)
        create_milestone(ctx, "alice", "M1", date(2026, 3, 1), ticket_ids=[ticket.id])

        seen = {}
        for offset in range(1, 10):
            ctx.advance_clock(START + timedelta(days=offset))
            seen[offset] = ticket.priority

        assert seen[2] == Priority.LOW
        assert seen[3] == Priority.MEDIUM
        assert seen[5] == Priority.MEDIUM
        assert seen[6] == Priority.HIGH
        assert seen[9] == Priority.CRITICAL

    def test_priority_stays_at_critical(self):
        ctx = _make_context()
        ticket = _report(ctx, priority=Priority.CRITICAL)
        create_milestone(ctx, "alice", "M1", date(2026, 3, 1), ticket_ids=[ticket.id])

        ctx.advance_clock(START + timedelta(days=6))

        assert ticket.priority == Priority.CRITICAL

    def test_blocked_milestone_does_not_escalate(self):
        ctx = _make_context()
        ticket = _report(ctx)
        create_milestone(ctx, "alice", "M2", date(2026, 3, 1), ticket_ids=[ticket.id])
        create_milestone(ctx, "alice", "M1", date(2026, 3, 1), blocking_for=["M2"])

        ctx.advance_clock(START + timedelta(days=9))

        assert ticket.priority == Priority.LOW

    def test_closed_tickets_are_not_escalated(self):
        ctx = _make_context()
        ticket = _report(ctx)
        create_milestone(
            ctx, "alice", "M1", date(2026, 3, 1), ticket_ids=[ticket.id], assigned_devs=["bob"]
        )
        _close(ctx, ticket.id)

        ctx.advance_clock(START + timedelta(days=3))

        assert ticket.priority == Priority.LOW

    def test_jumping_days_matches_daily_steps(self):
        def build():
            ctx = _make_context()
            first = _report(ctx, title="First")
            second = _report(ctx, priority=Priority.MEDIUM, title="Second")
            create_milestone(
                ctx,
                "alice",
                "M1",
                date(2026, 1, 15),
                ticket_ids=[first.id, second.id],
                assigned_devs=["bob"],
            )
            _close(ctx, first.id)
            return ctx

        stepped, jumped = build(), build()
        for offset in range(1, 20):
            stepped.advance_clock(START + timedelta(days=offset))
        jumped.advance_clock(START + timedelta(days=19))

        assert [t.priority for t in stepped.all_tickets()] == [
            t.priority for t in jumped.all_tickets()
        ]
        assert stepped.users["bob"].notifications == jumped.users["bob"].notifications

        def state(milestone):
            return (
                milestone.days_until_due,
                milestone.overdue_by,
                milestone.status,
                milestone.completion_percentage,
                milestone.open_ticket_ids,
                milestone.closed_ticket_ids,
                milestone.last_priority_increase,
                milestone.notified_one_day_before,
                milestone.was_blocked_before_due,
                milestone.was_completed,
            )

        assert state(stepped.milestones[0]) == state(jumped.milestones[0])


class TestDueTomorrow:
    """Tests for the one-day-before-due rule."""

    def test_forces_critical_and_notifies_once(self):
        ctx = _make_context()
        ticket = _report(ctx)
        create_milestone(
            ctx,
            "alice",
            "M1",
            date(2026, 1, 10),
            ticket_ids=[ticket.id],
            assigned_devs=["bob"],
        )

        ctx.advance_clock(date(2026, 1, 9))
        assert ticket.priority == Priority.CRITICAL

        ctx.advance_clock(date(2026, 1, 14))
        assert _notifications(ctx, "bob", "is due tomorrow") == [
            "Milestone M1 is due tomorrow. All unresolved tickets are now CRITICAL."
        ]

    def test_blocked_milestone_is_not_warned(self):
        ctx = _make_context()
        create_milestone(ctx, "alice", "M2", date(2026, 1, 5), assigned_devs=["bob"])
        create_milestone(ctx, "alice", "M1", date(2026, 2, 1), blocking_for=["M2"])

        ctx.advance_clock(date(2026, 1, 6))

        assert _notifications(ctx, "bob", "is due tomorrow") == []


class TestUnblock:
    """Tests for unblocking when a blocker's tickets are all CLOSED."""

    def _make_chain(self, blocked_due):
        ctx = _make_context()
        blocker_ticket = _report(ctx, title="Blocker")
        blocked_ticket = _report(ctx, title="Blocked")
        blocked = create_milestone(
            ctx,
            "alice",
            "M2",
            blocked_due,
            ticket_ids=[blocked_ticket.id],
            assigned_devs=["bob"],
        )
        create_milestone(
            ctx,
            "alice",
            "M1",
            date(2026, 3, 1),
            blocking_for=["M2"],
            ticket_ids=[blocker_ticket.id],
            assigned_devs=["bob"],
        )
        return ctx, blocker_ticket, blocked_ticket, blocked

    def test_unblocks_before_due(self):
        ctx, blocker_ticket, blocked_ticket, blocked = self._make_chain(date(2026, 2, 1))
        ctx.advance_clock(date(2026, 1, 2))

        _close(ctx, blocker_ticket.id)

        assert not blocked.is_blocked
        assert blocked.last_priority_increase == date(2026, 1, 2)
        assert blocked_ticket.priority == Priority.LOW
        assert _notifications(ctx, "bob", "is now unblocked") == [
            "Milestone M2 is now unblocked as ticket 0 has been CLOSED."
        ]

    def test_unblocked_after_due_forces_critical(self):
        ctx, blocker_ticket, blocked_ticket, blocked = self._make_chain(date(2026, 1, 5))
        ctx.advance_clock(date(2026, 1, 8))

        _close(ctx, blocker_ticket.id)

        assert not blocked.is_blocked
        assert blocked_ticket.priority == Priority.CRITICAL
        assert _notifications(ctx, "bob", "unblocked after due date") == [
            "Milestone M2 was unblocked after due date. All active tickets are now CRITICAL."
        ]

    def test_blocked_after_due_unblocks_without_forcing_critical(self):
        ctx = _make_context()
        blocker_ticket = _report(ctx, title="Blocker")
        blocked_ticket = _report(ctx, title="Blocked")
        ctx.advance_clock(date(2026, 1, 5))
        blocked = create_milestone(
            ctx,
            "alice",
            "M2",
            date(2026, 1, 3),
            ticket_ids=[blocked_ticket.id],
            assigned_devs=["bob"],
        )
        create_milestone(
            ctx,
            "alice",
            "M1",
            date(2026, 3, 1),
            blocking_for=["M2"],
            ticket_ids=[blocker_ticket.id],
            assigned_devs=["bob"],
        )
        assert blocked.is_blocked
        assert not blocked.was_blocked_before_due

        ctx.advance_clock(date(2026, 1, 6))
        _close(ctx, blocker_ticket.id)

        assert not blocked.is_blocked
        assert blocked_ticket.priority == Priority.LOW
        assert _notifications(ctx, "bob", "unblocked after due date") == []
        assert _notifications(ctx, "bob", "is now unblocked") == [
            "Milestone M2 is now unblocked as ticket 0 has been CLOSED."
        ]

    def test_chain_advances_one_link_per_close(self):
        ctx = _make_context()
        first = _report(ctx, title="First link")
        second = _report(ctx, title="Second link")
        third = _report(ctx, title="Third link")
        last = create_milestone(
            ctx, "alice", "C", date(2026, 3, 1), ticket_ids=[third.id], assigned_devs=["bob"]
        )
        middle = create_milestone(
            ctx,
            "alice",
            "B",
            date(2026, 3, 1),
            blocking_for=["C"],
            ticket_ids=[second.id],
            assigned_devs=["bob"],
        )
        create_milestone(
            ctx,
            "alice",
            "A",
            date(2026, 3, 1),
            blocking_for=["B"],
            ticket_ids=[first.id],
            assigned_devs=["bob"],
        )

        _close(ctx, first.id)

        assert not middle.is_blocked
        assert last.is_blocked
        with pytest.raises(AssignmentError, match="from blocked milestone C"):
            assign_ticket(ctx, "bob", third.id)

        _close(ctx, second.id)

        assert not last.is_blocked
        assert _notifications(ctx, "bob", "is now unblocked") == [
            "Milestone B is now unblocked as ticket 0 has been CLOSED.",
            "Milestone C is now unblocked as ticket 1 has been CLOSED.",
        ]

    def test_stays_blocked_while_a_ticket_is_open(self):
        ctx, blocker_ticket, _, blocked = self._make_chain(date(2026, 2, 1))
        extra = _report(ctx, title="Extra")
        ctx.milestones[1].ticket_ids.append(extra.id)
        ctx.milestones[1].tickets.append(extra)

        _close(ctx, blocker_ticket.id)

        assert blocked.is_blocked

    def test_blocked_milestone_rejects_assignment(self):
        ctx, _, blocked_ticket, _ = self._make_chain(date(2026, 2, 1))

        with pytest.raises(AssignmentError, match="from blocked milestone M2"):
            assign_ticket(ctx, "bob", blocked_ticket.id)

        assert blocked_ticket.assigned_to is None


class TestViewData:
    """Tests for the derived milestone fields."""

    def test_live_due_counts(self):
        ctx = _make_context()
        ticket = _report(ctx)
        milestone = create_milestone(
            ctx, "alice", "M1", date(2026, 1, 5), ticket_ids=[ticket.id]
        )
        assert milestone.days_until_due == 5
        assert milestone.overdue_by == 0

        ctx.advance_clock(date(2026, 1, 8))

        assert milestone.days_until_due == 0
        assert milestone.overdue_by == 4

    def test_completion_percentage_rounds_to_two_places(self):
        ctx = _make_context()
        tickets = [_report(ctx, title=f"T{i}") for i in range(3)]
        milestone = create_milestone(
            ctx,
            "alice",
            "M1",
            date(2026, 2, 1),
            ticket_ids=[t.id for t in tickets],
            assigned_devs=["bob"],
        )

        _close(ctx, tickets[0].id)

        assert milestone.open_ticket_ids == [1, 2]
        assert milestone.closed_ticket_ids == [0]
        assert milestone.completion_percentage == 0.33

    def test_empty_milestone_is_not_completed(self):
        ctx = _make_context()
        milestone = create_milestone(ctx, "alice", "M1", date(2026, 2, 1))

        refresh_view_data(milestone, ctx.today)

        assert milestone.status == MilestoneStatus.ACTIVE
        assert milestone.completion_percentage == 0.0

    def test_completed_fields_freeze(self):
        ctx = _make_context()
        ticket = _report(ctx)
        milestone = create_milestone(
            ctx, "alice", "M1", date(2026, 1, 10), ticket_ids=[ticket.id], assigned_devs=["bob"]
        )

        _close(ctx, ticket.id)
        assert milestone.status == MilestoneStatus.COMPLETED
        assert milestone.days_until_due == 10

        ctx.advance_clock(date(2026, 1, 20))

        assert milestone.days_until_due == 10
        assert milestone.overdue_by == 0

    def test_completed_status_survives_reopening(self):
        ctx = _make_context()
        ticket = _report(ctx)
        milestone = create_milestone(
            ctx, "alice", "M1", date(2026, 2, 1), ticket_ids=[ticket.id], assigned_devs=["bob"]
        )
        _close(ctx, ticket.id)

        undo_change_status(ctx, "bob", ticket.id)

        assert milestone.open_ticket_ids == [ticket.id]
        assert milestone.status == MilestoneStatus.COMPLETED
