"""Milestone engine: due dates, escalation and the blocking graph."""

import logging
import math
from datetime import date
from typing import TYPE_CHECKING

from ticket_workflow.exceptions import MilestoneError
from ticket_workflow.models import (
    Milestone,
    MilestoneStatus,
    Priority,
    Status,
    TicketAction,
)

if TYPE_CHECKING:
    from ticket_workflow.context import WorkflowContext

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (Status.RESOLVED, Status.CLOSED)


def create_milestone(
    ctx: "WorkflowContext",
    username: str,
    name: str,
    due_date: date,
    blocking_for: list[str] | None = None,
    ticket_ids: list[int] | None = None,
    assigned_devs: list[str] | None = None,
) -> Milestone:
    """Register a new milestone and link it into the blocking graph.

    Milestones named in ``blocking_for`` are blocked only if they already
    exist; a name registered later is not linked retroactively.

    Raises:
        MilestoneError: If the name is taken or a ticket already belongs
            to another milestone
    """
    ticket_ids = list(ticket_ids or [])

    if ctx.find_milestone(name) is not None:
        raise MilestoneError(f"Milestone {name} already exists.")

    for existing in ctx.milestones:
        for ticket_id in ticket_ids:
            if ticket_id in existing.ticket_ids:
                raise MilestoneError(
                    f"Tickets {ticket_id} already assigned to milestone {existing.name}."
                )

    now = ctx.timestamp
    milestone = Milestone(
        name=name,
        due_date=due_date,
        created_by=username,
        created_at=now,
        blocking_for=list(blocking_for or []),
        ticket_ids=ticket_ids,
        assigned_devs=list(assigned_devs or []),
    )

    # Unknown ids are skipped
    for ticket_id in ticket_ids:
        ticket = ctx.find_ticket(ticket_id)
        if ticket is not None:
            milestone.tickets.append(ticket)

    _notify_devs(
        ctx,
        milestone,
        f"New milestone {name} has been created with due date {due_date.isoformat()}.",
    )

    for blocked_name in milestone.blocking_for:
        blocked = ctx.find_milestone(blocked_name)
        if blocked is not None:
            set_blocked(ctx, blocked, True)

    for ticket in milestone.tickets:
        ticket.history.append(TicketAction.added_to_milestone(name, username, now))

    ctx.milestones.append(milestone)
    logger.info(
        "Created milestone %s due %s with %d tickets", name, due_date.isoformat(), len(ticket_ids)
    )

    update_daily_state(ctx, milestone, now)
    return milestone


def set_blocked(ctx: "WorkflowContext", milestone: Milestone, blocked: bool) -> None:
    """Set the blocked flag, latching ``was_blocked_before_due`` when blocked on time."""
    milestone.is_blocked = blocked
    if blocked and ctx.today <= milestone.due_date:
        milestone.was_blocked_before_due = True


def update_daily_state(ctx: "WorkflowContext", milestone: Milestone, day: date) -> None:
    """Run one simulated day for a milestone.

    Order matters: the due-tomorrow check, then the escalation cadence,
    then the derived fields.
    """
    _check_one_day_before_due(ctx, milestone, day)

    if not milestone.is_blocked:
        elapsed = (day - milestone.last_priority_increase).days
        if elapsed >= ctx.config.escalation_interval_days:
            _escalate_tickets(milestone)
            milestone.last_priority_increase = day
            logger.info("Escalated ticket priorities of milestone %s", milestone.name)

    refresh_view_data(milestone, day)


def refresh_view_data(milestone: Milestone, day: date) -> None:
    """Recompute open/closed lists, due counts, status and completion."""
    milestone.open_ticket_ids = [t.id for t in milestone.tickets if t.status != Status.CLOSED]
    milestone.closed_ticket_ids = [t.id for t in milestone.tickets if t.status == Status.CLOSED]

    is_completed = not milestone.open_ticket_ids and bool(milestone.tickets)
    days_left = (milestone.due_date - day).days

    if is_completed and not milestone.was_completed:
        milestone.was_completed = True
        if days_left >= 0:
            milestone.frozen_days_until_due = days_left + 1
            milestone.frozen_overdue_by = 0
        else:
            milestone.frozen_days_until_due = 0
            milestone.frozen_overdue_by = -days_left
        logger.info("Milestone %s completed", milestone.name)

    # COMPLETED never reverts, even if a ticket is reopened by an undo
    if milestone.was_completed:
        milestone.status = MilestoneStatus.COMPLETED
        milestone.days_until_due = milestone.frozen_days_until_due
        milestone.overdue_by = milestone.frozen_overdue_by
    else:
        milestone.status = MilestoneStatus.ACTIVE
        if days_left >= 0:
            milestone.days_until_due = days_left + 1
            milestone.overdue_by = 0
        else:
            milestone.days_until_due = 0
            milestone.overdue_by = -days_left + 1

    total = len(milestone.ticket_ids)
    ratio = len(milestone.closed_ticket_ids) / total if total else 0.0
    milestone.completion_percentage = math.floor(ratio * 100 + 0.5) / 100


def check_and_unblock(ctx: "WorkflowContext", milestone: Milestone, closed_ticket_id: int) -> None:
    """Unblock the milestones this one blocks, once all of its tickets are CLOSED.

    Called when ``closed_ticket_id`` (a ticket of ``milestone``) moves to
    CLOSED. A chain only advances one link per call.
    """
    if any(ticket.status != Status.CLOSED for ticket in milestone.tickets):
        return

    today = ctx.today
    for blocked_name in milestone.blocking_for:
        blocked = ctx.find_milestone(blocked_name)
        if blocked is None or not blocked.is_blocked:
            continue

        set_blocked(ctx, blocked, False)
        blocked.last_priority_increase = today

        if today > blocked.due_date and blocked.was_blocked_before_due:
            _force_critical(blocked)
            _notify_devs(
                ctx,
                blocked,
                f"Milestone {blocked.name} was unblocked after due date. "
                "All active tickets are now CRITICAL.",
            )
            logger.info("Milestone %s unblocked late by %s", blocked.name, milestone.name)
        else:
            _notify_devs(
                ctx,
                blocked,
                f"Milestone {blocked.name} is now unblocked as ticket "
                f"{closed_ticket_id} has been CLOSED.",
            )
            logger.info("Milestone %s unblocked by %s", blocked.name, milestone.name)


def _check_one_day_before_due(ctx: "WorkflowContext", milestone: Milestone, day: date) -> None:
    if (
        (milestone.due_date - day).days == 1
        and not milestone.notified_one_day_before
        and not milestone.is_blocked
    ):
        _force_critical(milestone)
        _notify_devs(
            ctx,
            milestone,
            f"Milestone {milestone.name} is due tomorrow. All unresolved tickets are now CRITICAL.",
        )
        milestone.notified_one_day_before = True

    if milestone.is_blocked and day <= milestone.due_date:
        milestone.was_blocked_before_due = True


def _force_critical(milestone: Milestone) -> None:
    for ticket in milestone.tickets:
        if ticket.status not in TERMINAL_STATUSES:
            ticket.priority = Priority.CRITICAL


def _escalate_tickets(milestone: Milestone) -> None:
    for ticket in milestone.tickets:
        if ticket.status != Status.CLOSED:
            ticket.priority = ticket.priority.next()


def _notify_devs(ctx: "WorkflowContext", milestone: Milestone, message: str) -> None:
    for dev in milestone.assigned_devs:
        ctx.notify(dev, message)
