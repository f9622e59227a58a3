"""Batch command records and their dispatch onto the workflow engine."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ticket_workflow import views
from ticket_workflow.context import WorkflowContext
from ticket_workflow.exceptions import PermissionDeniedError, WorkflowError
from ticket_workflow.history import undo_change_status, undo_comment, unassign_ticket
from ticket_workflow.milestones import create_milestone
from ticket_workflow.models import (
    ExpertiseArea,
    Priority,
    Role,
    TicketType,
    parse_date,
)
from ticket_workflow.search import SearchFilter, search
from ticket_workflow.tickets import add_comment, assign_ticket, change_status, report_ticket

logger = logging.getLogger(__name__)

# Report fields that map onto Ticket attributes; anything else is kept in details
_TICKET_FIELDS = {"type", "title", "businessPriority", "expertiseArea", "description", "reportedBy"}

# Other commands apply their per-role rules inside the operation itself
REQUIRED_ROLES: dict[str, Role] = {
    "createMilestone": Role.MANAGER,
}


@dataclass
class Command:
    """One command of the input batch."""

    command: str
    username: str
    timestamp: date
    params: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict) -> "Command":
        """Build a command from its JSON object.

        Parameters may sit under ``params`` or at the top level.
        """
        params = dict(raw.get("params") or {})
        for key, value in raw.items():
            if key not in ("command", "username", "timestamp", "params"):
                params.setdefault(key, value)
        return cls(
            command=raw["command"],
            username=raw.get("username", ""),
            timestamp=parse_date(raw["timestamp"]),
            params=params,
        )

    @property
    def ticket_id(self) -> int:
        return int(self.params["ticketID"])

    def header(self) -> dict:
        return {
            "command": self.command,
            "username": self.username,
            "timestamp": self.timestamp.isoformat(),
        }


Handler = Callable[[WorkflowContext, Command], dict | None]


def _report_ticket(ctx: WorkflowContext, command: Command) -> None:
    params = command.params
    priority = params.get("businessPriority")
    report_ticket(
        ctx,
        command.username,
        ticket_type=TicketType(params["type"]),
        title=params.get("title", ""),
        priority=Priority(priority) if priority else Priority.LOW,
        expertise_area=ExpertiseArea(params["expertiseArea"]),
        reported_by=params.get("reportedBy") or "",
        description=params.get("description"),
        details={k: v for k, v in params.items() if k not in _TICKET_FIELDS},
    )


def _create_milestone(ctx: WorkflowContext, command: Command) -> None:
    params = command.params
    create_milestone(
        ctx,
        command.username,
        name=params["name"],
        due_date=parse_date(params["dueDate"]),
        blocking_for=params.get("blockingFor") or [],
        ticket_ids=[int(t) for t in params.get("tickets") or []],
        assigned_devs=params.get("assignedDevs") or [],
    )


def _assign_ticket(ctx: WorkflowContext, command: Command) -> None:
    assign_ticket(ctx, command.username, command.ticket_id)


def _undo_assign_ticket(ctx: WorkflowContext, command: Command) -> None:
    unassign_ticket(ctx, command.username, command.ticket_id)


def _change_status(ctx: WorkflowContext, command: Command) -> None:
    change_status(ctx, command.username, command.ticket_id)


def _undo_change_status(ctx: WorkflowContext, command: Command) -> None:
    undo_change_status(ctx, command.username, command.ticket_id)


def _add_comment(ctx: WorkflowContext, command: Command) -> None:
    add_comment(ctx, command.username, command.ticket_id, command.params.get("comment", ""))


def _undo_add_comment(ctx: WorkflowContext, command: Command) -> None:
    undo_comment(ctx, command.username, command.ticket_id)


def _view_milestones(ctx: WorkflowContext, command: Command) -> dict:
    user = ctx.find_user(command.username)
    return {**command.header(), "milestones": views.view_milestones(ctx, user)}


def _view_tickets(ctx: WorkflowContext, command: Command) -> dict:
    user = ctx.find_user(command.username)
    return {**command.header(), "tickets": views.view_tickets(ctx, user)}


def _view_assigned_tickets(ctx: WorkflowContext, command: Command) -> dict:
    user = ctx.find_user(command.username)
    return {**command.header(), "assignedTickets": views.view_assigned_tickets(user)}


def _view_ticket_history(ctx: WorkflowContext, command: Command) -> dict:
    user = ctx.find_user(command.username)
    return {**command.header(), "ticketHistory": views.view_ticket_history(ctx, user)}


def _view_notifications(ctx: WorkflowContext, command: Command) -> dict | None:
    user = ctx.find_user(command.username)
    if user is None:
        return None
    return {**command.header(), "notifications": views.drain_notifications(user)}


def _search(ctx: WorkflowContext, command: Command) -> dict | None:
    user = ctx.find_user(command.username)
    if user is None:
        return None
    search_filter = SearchFilter.from_dict(command.params.get("filters"))
    return {
        **command.header(),
        "searchType": search_filter.search_type.value,
        "results": search(ctx, user, search_filter),
    }


HANDLERS: dict[str, Handler] = {
    "reportTicket": _report_ticket,
    "createMilestone": _create_milestone,
    "assignTicket": _assign_ticket,
    "undoAssignTicket": _undo_assign_ticket,
    "changeStatus": _change_status,
    "undoChangeStatus": _undo_change_status,
    "addComment": _add_comment,
    "undoAddComment": _undo_add_comment,
    "viewMilestones": _view_milestones,
    "viewTickets": _view_tickets,
    "viewAssignedTickets": _view_assigned_tickets,
    "viewTicketHistory": _view_ticket_history,
    "viewNotifications": _view_notifications,
    "search": _search,
}


def _check_permission(ctx: WorkflowContext, command: Command) -> None:
    required = REQUIRED_ROLES.get(command.command)
    user = ctx.find_user(command.username)
    if required is None or user is None:
        return
    if user.role != required:
        raise PermissionDeniedError(required.value, user.role.value)


def dispatch(ctx: WorkflowContext, command: Command) -> dict | None:
    """Advance the clock to the command's date, then run the command.

    Returns:
        The output object for the command (a view, or an ``error`` entry
        for a rejected command), or None when the command has no output
    """
    ctx.advance_clock(command.timestamp)

    handler = HANDLERS.get(command.command)
    if handler is None:
        logger.warning("Ignoring unknown command %r", command.command)
        return None

    try:
        _check_permission(ctx, command)
        return handler(ctx, command)
    except WorkflowError as e:
        logger.info("%s by %s rejected: %s", command.command, command.username, e)
        return {**command.header(), "error": str(e)}
