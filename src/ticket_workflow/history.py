"""Undo operations backed by the per-ticket history log."""

import logging
from datetime import date
from typing import TYPE_CHECKING

from ticket_workflow.exceptions import CommentRejectedError, StatusChangeError
from ticket_workflow.models import ActionType, Role, Status, Ticket, TicketAction
from ticket_workflow.tickets import set_status

if TYPE_CHECKING:
    from ticket_workflow.context import WorkflowContext

logger = logging.getLogger(__name__)


def last_status_change(ticket: Ticket) -> TicketAction | None:
    """Most recent STATUS_CHANGED entry, or None."""
    for action in reversed(ticket.history):
        if action.action == ActionType.STATUS_CHANGED:
            return action
    return None


def truncate_history_after(ticket: Ticket, cutoff: date) -> None:
    """Drop every history entry dated strictly after ``cutoff``.

    The cutoff compares dates, not log positions.
    """
    ticket.history[:] = [action for action in ticket.history if action.timestamp <= cutoff]


def undo_change_status(ctx: "WorkflowContext", username: str, ticket_id: int) -> None:
    """Revert the latest status change.

    The reversal is appended as a new STATUS_CHANGED entry; nothing is
    removed from the log.

    Raises:
        StatusChangeError: If the ticket is unassigned, or a developer other
            than the assignee asks
    """
    user = ctx.find_user(username)
    ticket = ctx.find_ticket(ticket_id)
    if user is None or ticket is None:
        return

    if not ticket.is_assigned:
        raise StatusChangeError(f"Ticket {ticket_id} is not assigned.")

    if user.role == Role.DEVELOPER and ticket.assigned_to != username:
        raise StatusChangeError(f"Ticket {ticket_id} is not assigned to developer {username}.")

    last = last_status_change(ticket)
    if last is None:
        return

    current = ticket.status
    set_status(ctx, ticket, last.from_status)
    ticket.history.append(
        TicketAction.status_changed(current, last.from_status, username, ctx.timestamp)
    )
    logger.info("Ticket %d reverted from %s to %s", ticket_id, current.value, last.from_status.value)


def unassign_ticket(ctx: "WorkflowContext", username: str, ticket_id: int) -> None:
    """Hand an IN_PROGRESS ticket back to the OPEN pool.

    Only tickets in the caller's own assigned set qualify; anything else
    is a no-op.
    """
    user = ctx.find_user(username)
    if user is None:
        return

    ticket = next(
        (
            t
            for t in user.assigned_tickets
            if t.id == ticket_id and t.status == Status.IN_PROGRESS
        ),
        None,
    )
    if ticket is None:
        logger.debug("Ticket %d is not in progress for %s", ticket_id, username)
        return

    now = ctx.timestamp
    set_status(ctx, ticket, Status.OPEN)
    ticket.assigned_at = None
    ticket.assigned_to = None
    ticket.solved_at = None
    ticket.history.append(TicketAction.de_assigned(username, now))
    truncate_history_after(ticket, now)
    user.assigned_tickets.remove(ticket)
    logger.info("Ticket %d unassigned from %s", ticket_id, username)


def undo_comment(ctx: "WorkflowContext", username: str, ticket_id: int) -> None:
    """Remove the most recently added comment.

    Anonymous tickets are rejected even when they have no comments.

    Raises:
        CommentRejectedError: If the ticket is anonymous
    """
    ticket = ctx.find_ticket(ticket_id)
    if ticket is None:
        return

    if ticket.is_anonymous:
        raise CommentRejectedError("Comments are not allowed on anonymous tickets.")

    if not ticket.comments:
        return

    removed = ticket.comments.pop(0)
    logger.debug(
        "%s removed comment by %s from ticket %d", username, removed.author, ticket_id
    )
