"""Filtered searches over tickets and a manager's developers."""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING

from ticket_workflow.eligibility import can_assign
from ticket_workflow.exceptions import SearchError
from ticket_workflow.models import (
    ExpertiseArea,
    Priority,
    Role,
    Seniority,
    Status,
    Ticket,
    User,
    format_date,
    parse_date,
)
from ticket_workflow.views import developer_milestone_ticket_ids

if TYPE_CHECKING:
    from ticket_workflow.context import WorkflowContext

logger = logging.getLogger(__name__)


class SearchType(str, Enum):
    TICKET = "TICKET"
    DEVELOPER = "DEVELOPER"


def _parse_enum(enum_cls: type[Enum], value: str | None) -> Enum | None:
    """Look up an enum member by name, ignoring case; unknown names disable the filter."""
    if not value:
        return None
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        logger.debug("Ignoring unknown %s filter value %r", enum_cls.__name__, value)
        return None


def _parse_optional_date(value: str | None) -> date | None:
    return parse_date(value) if value else None


@dataclass
class SearchFilter:
    """Criteria of one search command. Unset criteria match everything."""

    search_type: SearchType = SearchType.TICKET
    business_priority: Priority | None = None
    ticket_type: str | None = None
    created_at: date | None = None
    created_before: date | None = None
    created_after: date | None = None
    keywords: list[str] = field(default_factory=list)
    available_for_assignment: bool = False
    expertise_area: ExpertiseArea | None = None
    seniority: Seniority | None = None

    @classmethod
    def from_dict(cls, raw: dict | None) -> "SearchFilter":
        """Build a filter from the command's ``filters`` object.

        Raises:
            ValueError: If a date criterion is not ``yyyy-MM-dd``, or the
                search type is unknown
        """
        raw = raw or {}
        search_type = raw.get("searchType") or SearchType.TICKET.value
        return cls(
            search_type=SearchType(search_type),
            business_priority=_parse_enum(Priority, raw.get("businessPriority")),
            ticket_type=raw.get("type") or None,
            created_at=_parse_optional_date(raw.get("createdAt")),
            created_before=_parse_optional_date(raw.get("createdBefore")),
            created_after=_parse_optional_date(raw.get("createdAfter")),
            keywords=list(raw.get("keywords") or []),
            available_for_assignment=bool(raw.get("availableForAssignment")),
            expertise_area=_parse_enum(ExpertiseArea, raw.get("expertiseArea")),
            seniority=_parse_enum(Seniority, raw.get("seniority")),
        )

    def matches_ticket(self, ticket: Ticket) -> bool:
        if self.created_at and ticket.created_at != self.created_at:
            return False
        if self.created_before and not ticket.created_at < self.created_before:
            return False
        if self.created_after and not ticket.created_at > self.created_after:
            return False
        if self.business_priority and ticket.priority != self.business_priority:
            return False
        if self.ticket_type and ticket.type.value != self.ticket_type:
            return False
        if self.keywords and not any(_contains(ticket, word) for word in self.keywords):
            return False
        return True

    def matches_developer(self, user: User) -> bool:
        if self.expertise_area and user.expertise_area != self.expertise_area:
            return False
        if self.seniority and user.seniority != self.seniority:
            return False
        return True


def _contains(ticket: Ticket, word: str) -> bool:
    return word in ticket.title or word in (ticket.description or "")


def matching_words(ticket: Ticket, keywords: list[str]) -> list[str]:
    """Keywords found in the title or description regardless of case, sorted."""
    haystacks = (ticket.title.lower(), (ticket.description or "").lower())
    return sorted(word for word in keywords if any(word.lower() in h for h in haystacks))


def _visible_tickets(ctx: "WorkflowContext", user: User) -> list[Ticket]:
    if user.role == Role.MANAGER:
        return list(ctx.all_tickets())

    if user.role == Role.DEVELOPER:
        milestone_ids = developer_milestone_ticket_ids(ctx, user.username)
        return [
            t
            for t in ctx.all_tickets()
            if t.status == Status.OPEN
            and t.id in milestone_ids
            and t.assigned_to in (None, user.username)
        ]

    return []


def search_tickets(ctx: "WorkflowContext", user: User, search_filter: SearchFilter) -> list[dict]:
    """Tickets visible to ``user`` that pass every criterion, by creation date then id.

    Developers only ever see OPEN tickets, and with ``availableForAssignment``
    only those they could take right now. Manager results carry the
    keywords each ticket matched.
    """
    results = []
    for ticket in _visible_tickets(ctx, user):
        if not search_filter.matches_ticket(ticket):
            continue
        if user.role == Role.DEVELOPER:
            if ticket.status != Status.OPEN:
                continue
            if search_filter.available_for_assignment and not can_assign(ctx, user, ticket):
                continue
        results.append(ticket)

    results.sort(key=lambda t: (t.created_at, t.id))

    output = []
    for ticket in results:
        data = {
            "id": ticket.id,
            "type": ticket.type.value,
            "title": ticket.title,
            "businessPriority": ticket.priority.value,
            "status": ticket.status.value,
            "createdAt": format_date(ticket.created_at),
            "solvedAt": format_date(ticket.solved_at),
            "reportedBy": ticket.reported_by,
        }
        if user.role == Role.MANAGER:
            data["matchingWords"] = matching_words(ticket, search_filter.keywords)
        output.append(data)
    return output


def search_developers(ctx: "WorkflowContext", user: User, search_filter: SearchFilter) -> list[dict]:
    """A manager's subordinates that pass the developer criteria, by username.

    Raises:
        SearchError: If the user is not a manager
    """
    if user.role != Role.MANAGER:
        raise SearchError("Only managers can search for developers.")

    subordinates = [ctx.find_user(name) for name in user.subordinates]
    found = sorted(
        (dev for dev in subordinates if dev is not None and search_filter.matches_developer(dev)),
        key=lambda dev: dev.username,
    )
    return [
        {
            "username": dev.username,
            "expertiseArea": dev.expertise_area.value if dev.expertise_area else "",
            "seniority": dev.seniority.value if dev.seniority else "",
            "hireDate": format_date(dev.hire_date),
        }
        for dev in found
    ]


def search(ctx: "WorkflowContext", user: User, search_filter: SearchFilter) -> list[dict]:
    """Run a ticket or developer search depending on the filter's type.

    Raises:
        SearchError: If a non-manager searches for developers
    """
    if search_filter.search_type == SearchType.DEVELOPER:
        return search_developers(ctx, user, search_filter)
    return search_tickets(ctx, user, search_filter)
