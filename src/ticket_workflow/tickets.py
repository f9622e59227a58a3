"""Ticket lifecycle: reporting, status transitions, assignment and comments."""

import logging
from typing import TYPE_CHECKING, Any

from ticket_workflow.eligibility import check_assignment
from ticket_workflow.exceptions import (
    CommentRejectedError,
    ReportRejectedError,
    StatusChangeError,
)
from ticket_workflow.milestones import check_and_unblock, refresh_view_data
from ticket_workflow.models import (
    Comment,
    ExpertiseArea,
    Phase,
    Priority,
    Role,
    Status,
    Ticket,
    TicketAction,
    TicketType,
)

if TYPE_CHECKING:
    from ticket_workflow.context import WorkflowContext

logger = logging.getLogger(__name__)


def report_ticket(
    ctx: "WorkflowContext",
    username: str,
    ticket_type: TicketType,
    title: str,
    priority: Priority,
    expertise_area: ExpertiseArea,
    reported_by: str = "",
    description: str | None = None,
    details: dict[str, Any] | None = None,
) -> Ticket:
    """Create a ticket owned by ``username``.

    The id is taken from the global counter before validation, so a
    rejected report still consumes one.

    Raises:
        ReportRejectedError: For anonymous non-BUG reports, reports outside
            the testing phase, or an unknown reporting user
    """
    ticket_id = ctx.allocate_ticket_id()

    if not reported_by:
        priority = Priority.LOW
        if ticket_type != TicketType.BUG:
            raise ReportRejectedError(
                "Anonymous reports are only allowed for tickets of type BUG."
            )

    if ctx.clock.phase != Phase.TESTING:
        raise ReportRejectedError("Tickets can only be reported during testing phases.")

    user = ctx.find_user(username)
    if user is None:
        raise ReportRejectedError(f"The user {username} does not exist.")

    ticket = Ticket(
        id=ticket_id,
        type=ticket_type,
        title=title,
        priority=priority,
        expertise_area=expertise_area,
        reported_by=reported_by,
        created_at=ctx.timestamp,
        description=description,
        details=dict(details or {}),
    )
    user.tickets.append(ticket)
    logger.info("Ticket %d (%s) reported by %s", ticket.id, ticket_type.value, username)
    return ticket


def set_status(ctx: "WorkflowContext", ticket: Ticket, new_status: Status) -> None:
    """Apply a status and its lifecycle side effects.

    Entering RESOLVED stamps ``solved_at`` (and ``first_solved_at`` once).
    Entering CLOSED from another status runs the unblock cascade of the
    ticket's milestone.
    """
    old_status = ticket.status
    ticket.status = new_status
    now = ctx.timestamp

    if new_status == Status.RESOLVED:
        ticket.solved_at = now
        if ticket.first_solved_at is None:
            ticket.first_solved_at = now

    if new_status in (Status.RESOLVED, Status.CLOSED) and ticket.assigned_at and ticket.solved_at:
        elapsed = abs((ticket.solved_at - ticket.assigned_at).days) + 1
        ticket.days_to_resolve = max(0, elapsed)

    milestone = ctx.milestone_for_ticket(ticket.id)
    if milestone is None:
        return

    if new_status == Status.CLOSED and old_status != Status.CLOSED:
        check_and_unblock(ctx, milestone, ticket.id)

    refresh_view_data(milestone, ctx.today)


def change_status(ctx: "WorkflowContext", username: str, ticket_id: int) -> None:
    """Advance an assigned ticket one status step.

    Unassigned and CLOSED tickets are left alone.

    Raises:
        StatusChangeError: If a developer other than the assignee asks
    """
    user = ctx.find_user(username)
    ticket = ctx.find_ticket(ticket_id)
    if user is None or ticket is None:
        return

    if not ticket.is_assigned or ticket.status == Status.CLOSED:
        logger.debug("Status of ticket %d left unchanged", ticket_id)
        return

    if user.role == Role.DEVELOPER and ticket.assigned_to != username:
        raise StatusChangeError(f"Ticket {ticket_id} is not assigned to developer {username}.")

    old_status = ticket.status
    set_status(ctx, ticket, old_status.next())

    if ticket.status in (Status.RESOLVED, Status.CLOSED) and ticket.solved_at is None:
        ticket.solved_at = ctx.timestamp

    ticket.history.append(
        TicketAction.status_changed(old_status, ticket.status, username, ctx.timestamp)
    )


def assign_ticket(ctx: "WorkflowContext", username: str, ticket_id: int) -> None:
    """Assign an OPEN ticket to the developer ``username``.

    Raises:
        AssignmentError: If the developer is not eligible
    """
    developer = ctx.find_user(username)
    if developer is None:
        return

    if any(t.id == ticket_id for t in developer.assigned_tickets):
        return

    ticket = ctx.find_ticket(ticket_id)
    if ticket is None:
        return

    check_assignment(ctx, developer, ticket)

    now = ctx.timestamp
    old_status = ticket.status
    set_status(ctx, ticket, Status.IN_PROGRESS)
    ticket.assigned_at = now
    ticket.assigned_to = username
    developer.assigned_tickets.append(ticket)

    ticket.history.append(TicketAction.assigned(username, now))
    ticket.history.append(
        TicketAction.status_changed(old_status, Status.IN_PROGRESS, username, now)
    )
    logger.info("Ticket %d assigned to %s", ticket_id, username)


def add_comment(ctx: "WorkflowContext", username: str, ticket_id: int, content: str) -> None:
    """Add a comment at the front of the ticket's comment list.

    Raises:
        CommentRejectedError: If the comment breaks a commenting rule
    """
    user = ctx.find_user(username)
    ticket = ctx.find_ticket(ticket_id)
    if user is None or ticket is None:
        return

    if ticket.is_anonymous:
        raise CommentRejectedError("Comments are not allowed on anonymous tickets.")

    min_length = ctx.config.min_comment_length
    if len(content) < min_length:
        raise CommentRejectedError(f"Comment must be at least {min_length} characters long.")

    if user.role == Role.DEVELOPER and ticket.is_assigned and ticket.assigned_to != username:
        raise CommentRejectedError(
            f"Ticket {ticket_id} is not assigned to the developer {username}."
        )

    if user.role == Role.REPORTER:
        if ticket.reported_by != username:
            raise CommentRejectedError(f"Reporter {username} cannot comment on ticket {ticket_id}.")
        if ticket.status == Status.CLOSED:
            raise CommentRejectedError("Reporters cannot comment on CLOSED tickets.")

    ticket.comments.insert(0, Comment(content, username, ctx.timestamp))
