"""Assignment eligibility rules: expertise, seniority and milestone membership."""

from typing import TYPE_CHECKING

from ticket_workflow.exceptions import AssignmentError
from ticket_workflow.models import (
    ExpertiseArea,
    Priority,
    Seniority,
    Status,
    Ticket,
    TicketType,
    User,
)

if TYPE_CHECKING:
    from ticket_workflow.context import WorkflowContext

# developer area -> ticket areas it may take
EXPERTISE_COMPATIBILITY: dict[ExpertiseArea, frozenset[ExpertiseArea]] = {
    ExpertiseArea.FRONTEND: frozenset({ExpertiseArea.FRONTEND, ExpertiseArea.DESIGN}),
    ExpertiseArea.BACKEND: frozenset({ExpertiseArea.BACKEND, ExpertiseArea.DB}),
    ExpertiseArea.FULLSTACK: frozenset({
        ExpertiseArea.FRONTEND,
        ExpertiseArea.BACKEND,
        ExpertiseArea.DEVOPS,
        ExpertiseArea.DESIGN,
        ExpertiseArea.DB,
    }),
    ExpertiseArea.DEVOPS: frozenset({ExpertiseArea.DEVOPS}),
    ExpertiseArea.DESIGN: frozenset({ExpertiseArea.DESIGN, ExpertiseArea.FRONTEND}),
    ExpertiseArea.DB: frozenset({ExpertiseArea.DB}),
    ExpertiseArea.MOBILE: frozenset(),
}

_JUNIOR_TYPES = (TicketType.BUG, TicketType.UI_FEEDBACK)
_JUNIOR_PRIORITIES = (Priority.LOW, Priority.MEDIUM)


def expertise_compatible(developer_area: ExpertiseArea | None, ticket_area: ExpertiseArea) -> bool:
    if developer_area is None:
        return False
    return ticket_area in EXPERTISE_COMPATIBILITY.get(developer_area, frozenset())


def seniority_compatible(seniority: Seniority | None, ticket: Ticket) -> bool:
    if seniority is Seniority.JUNIOR:
        return ticket.priority in _JUNIOR_PRIORITIES and ticket.type in _JUNIOR_TYPES
    if seniority is Seniority.MID:
        return ticket.priority != Priority.CRITICAL
    return seniority is Seniority.SENIOR


def required_expertise_areas(ticket_area: ExpertiseArea) -> list[str]:
    """Developer areas able to take a ticket of ``ticket_area``, sorted by name."""
    areas = sorted(
        area.value
        for area, accepted in EXPERTISE_COMPATIBILITY.items()
        if ticket_area in accepted
    )
    return areas or [ticket_area.value]


def required_seniority_levels(ticket: Ticket) -> list[str]:
    """Seniority levels reported as required for a ticket, sorted by name."""
    levels: list[str] = []
    priority, ticket_type = ticket.priority, ticket.type

    if priority in _JUNIOR_PRIORITIES and ticket_type in _JUNIOR_TYPES:
        levels.append(Seniority.JUNIOR.value)

    if priority != Priority.CRITICAL:
        levels.append(Seniority.MID.value)

    if priority == Priority.CRITICAL or ticket_type == TicketType.FEATURE_REQUEST:
        levels.append(Seniority.SENIOR.value)

    return sorted(levels)


def check_assignment(ctx: "WorkflowContext", developer: User, ticket: Ticket) -> None:
    """Validate that ``developer`` may take ``ticket``.

    Raises:
        AssignmentError: With the first failing rule as the message
    """
    if ticket.status != Status.OPEN:
        raise AssignmentError("Only OPEN tickets can be assigned.")

    if not expertise_compatible(developer.expertise_area, ticket.expertise_area):
        current = developer.expertise_area.value if developer.expertise_area else None
        raise AssignmentError(
            f"Developer {developer.username} cannot assign ticket {ticket.id} "
            "due to expertise area. Required: "
            f"{', '.join(required_expertise_areas(ticket.expertise_area))}; "
            f"Current: {current}."
        )

    if not seniority_compatible(developer.seniority, ticket):
        current = developer.seniority.value if developer.seniority else None
        raise AssignmentError(
            f"Developer {developer.username} cannot assign ticket {ticket.id} "
            "due to seniority level. Required: "
            f"{', '.join(required_seniority_levels(ticket))}; "
            f"Current: {current}."
        )

    milestone = ctx.milestone_for_ticket(ticket.id)
    if milestone is None:
        return

    if milestone.is_blocked:
        raise AssignmentError(
            f"Cannot assign ticket {ticket.id} from blocked milestone {milestone.name}."
        )

    if developer.username not in milestone.assigned_devs:
        raise AssignmentError(
            f"Developer {developer.username} is not assigned to milestone {milestone.name}."
        )


def can_assign(ctx: "WorkflowContext", developer: User, ticket: Ticket) -> bool:
    try:
        check_assignment(ctx, developer, ticket)
    except AssignmentError:
        return False
    return True
