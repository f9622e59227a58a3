"""Read-only dict snapshots of workflow state for the command output."""

from typing import TYPE_CHECKING

from ticket_workflow.models import (
    Comment,
    Milestone,
    Role,
    Status,
    Ticket,
    TicketAction,
    User,
    format_date,
)

if TYPE_CHECKING:
    from ticket_workflow.context import WorkflowContext


def comment_to_dict(comment: Comment) -> dict:
    return {
        "author": comment.author,
        "content": comment.content,
        "createdAt": format_date(comment.created_at),
    }


def action_to_dict(action: TicketAction) -> dict:
    """Convert a history entry, leaving out fields the action type doesn't use."""
    data: dict = {}
    if action.milestone is not None:
        data["milestone"] = action.milestone
    if action.from_status is not None:
        data["from"] = action.from_status.value
    if action.to_status is not None:
        data["to"] = action.to_status.value
    data["by"] = action.by
    data["timestamp"] = format_date(action.timestamp)
    data["action"] = action.action.value
    return data


def ticket_to_dict(ticket: Ticket, with_comments: bool = True) -> dict:
    """Convert a ticket; ``with_comments=False`` leaves the comment list empty."""
    return {
        "id": ticket.id,
        "type": ticket.type.value,
        "title": ticket.title,
        "businessPriority": ticket.priority.value,
        "status": ticket.status.value,
        "createdAt": format_date(ticket.created_at),
        "assignedAt": format_date(ticket.assigned_at),
        "solvedAt": format_date(ticket.solved_at),
        "assignedTo": ticket.assigned_to or "",
        "reportedBy": ticket.reported_by,
        "comments": [comment_to_dict(c) for c in ticket.comments] if with_comments else [],
    }


def milestone_to_dict(milestone: Milestone) -> dict:
    return {
        "name": milestone.name,
        "blockingFor": list(milestone.blocking_for),
        "dueDate": format_date(milestone.due_date),
        "createdAt": format_date(milestone.created_at),
        "tickets": list(milestone.ticket_ids),
        "assignedDevs": list(milestone.assigned_devs),
        "createdBy": milestone.created_by,
        "status": milestone.status.value,
        "isBlocked": milestone.is_blocked,
        "daysUntilDue": milestone.days_until_due,
        "overdueBy": milestone.overdue_by,
        "openTickets": list(milestone.open_ticket_ids),
        "closedTickets": list(milestone.closed_ticket_ids),
        "completionPercentage": milestone.completion_percentage,
        "repartition": _repartition(milestone),
    }


def _repartition(milestone: Milestone) -> list[dict]:
    """Tickets per assigned developer, fewest tickets first, then by name."""
    per_dev: dict[str, list[int]] = {dev: [] for dev in milestone.assigned_devs}
    for ticket in milestone.tickets:
        if ticket.assigned_to in per_dev:
            per_dev[ticket.assigned_to].append(ticket.id)

    ordered = sorted(per_dev, key=lambda dev: (len(per_dev[dev]), dev))
    return [{"developer": dev, "assignedTickets": per_dev[dev]} for dev in ordered]


def view_milestones(ctx: "WorkflowContext", user: User | None) -> list[dict]:
    """Milestones a manager created, or a developer is assigned to."""
    if user is None:
        return []

    if user.role == Role.MANAGER:
        visible = [m for m in ctx.milestones if m.created_by == user.username]
    elif user.role == Role.DEVELOPER:
        visible = [m for m in ctx.milestones if user.username in m.assigned_devs]
    else:
        visible = []

    visible.sort(key=lambda m: (m.due_date, m.name))
    return [milestone_to_dict(m) for m in visible]


def developer_milestone_ticket_ids(ctx: "WorkflowContext", username: str) -> set[int]:
    ids: set[int] = set()
    for milestone in ctx.milestones:
        if username in milestone.assigned_devs:
            ids.update(milestone.ticket_ids)
    return ids


def view_tickets(ctx: "WorkflowContext", user: User | None) -> list[dict]:
    """Tickets visible to a user, ordered by creation date then id.

    Managers see everything, developers the OPEN tickets of their
    milestones, reporters their own reports.
    """
    if user is None:
        return []

    tickets = list(ctx.all_tickets())
    if user.role == Role.DEVELOPER:
        milestone_ids = developer_milestone_ticket_ids(ctx, user.username)
        tickets = [t for t in tickets if t.status == Status.OPEN and t.id in milestone_ids]
    elif user.role == Role.REPORTER:
        tickets = [t for t in tickets if t.reported_by == user.username]

    tickets.sort(key=lambda t: (t.created_at, t.id))
    return [ticket_to_dict(t, with_comments=False) for t in tickets]


def view_assigned_tickets(user: User | None) -> list[dict]:
    """A developer's tickets, highest priority first."""
    if user is None:
        return []

    tickets = sorted(user.assigned_tickets, key=lambda t: (-t.priority.rank, t.id))
    return [ticket_to_dict(t) for t in tickets]


def view_ticket_history(ctx: "WorkflowContext", user: User | None) -> list[dict]:
    """History and comments of the tickets a user has dealt with.

    Developers see tickets whose log mentions them; managers see the
    tickets of milestones they created.
    """
    if user is None:
        return []

    visible: list[Ticket] = []
    if user.role == Role.DEVELOPER:
        visible = [
            t
            for t in ctx.all_tickets()
            if any(action.by == user.username for action in t.history)
        ]
    elif user.role == Role.MANAGER:
        for milestone in ctx.milestones:
            if milestone.created_by == user.username:
                visible.extend(milestone.tickets)

    unique = {t.id: t for t in visible}
    ordered = sorted(unique.values(), key=lambda t: (t.created_at, t.id))
    return [
        {
            "id": t.id,
            "title": t.title,
            "status": t.status.value,
            "actions": [action_to_dict(a) for a in t.history],
            "comments": [comment_to_dict(c) for c in t.comments],
        }
        for t in ordered
    ]


def drain_notifications(user: User) -> list[str]:
    """Return the user's inbox and clear it."""
    messages = list(user.notifications)
    user.notifications.clear()
    return messages
