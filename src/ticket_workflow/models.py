"""Data models for the ticket workflow engine."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

DATE_FORMAT = "%Y-%m-%d"


def parse_date(value: str) -> date:
    """Parse a ``yyyy-MM-dd`` string to a date object."""
    return datetime.strptime(value, DATE_FORMAT).date()


def format_date(value: date | None) -> str:
    """Render a date as ``yyyy-MM-dd``, or an empty string when unset."""
    return value.strftime(DATE_FORMAT) if value else ""


class TicketType(str, Enum):
    BUG = "BUG"
    FEATURE_REQUEST = "FEATURE_REQUEST"
    UI_FEEDBACK = "UI_FEEDBACK"


class Priority(str, Enum):
    """Business priority, ordered from LOW to CRITICAL."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return list(Priority).index(self)

    def next(self) -> "Priority":
        """One escalation step; CRITICAL is the ceiling."""
        members = list(Priority)
        return members[min(self.rank + 1, len(members) - 1)]


class Status(str, Enum):
    """Ticket status, ordered from OPEN to CLOSED."""

    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"

    def next(self) -> "Status":
        members = list(Status)
        return members[min(members.index(self) + 1, len(members) - 1)]


class MilestoneStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class ExpertiseArea(str, Enum):
    FRONTEND = "FRONTEND"
    BACKEND = "BACKEND"
    DEVOPS = "DEVOPS"
    DESIGN = "DESIGN"
    DB = "DB"
    MOBILE = "MOBILE"
    FULLSTACK = "FULLSTACK"


class Seniority(str, Enum):
    JUNIOR = "JUNIOR"
    MID = "MID"
    SENIOR = "SENIOR"


class Role(str, Enum):
    MANAGER = "MANAGER"
    DEVELOPER = "DEVELOPER"
    REPORTER = "REPORTER"


class ActionType(str, Enum):
    ASSIGNED = "ASSIGNED"
    DE_ASSIGNED = "DE-ASSIGNED"
    STATUS_CHANGED = "STATUS_CHANGED"
    ADDED_TO_MILESTONE = "ADDED_TO_MILESTONE"


class Phase(str, Enum):
    """Organisation phase; cycles TESTING -> DEVELOPING -> DECIDING."""

    TESTING = "TESTING"
    DEVELOPING = "DEVELOPING"
    DECIDING = "DECIDING"

    def next(self) -> "Phase":
        members = list(Phase)
        return members[(members.index(self) + 1) % len(members)]


@dataclass
class Comment:
    """A comment on a ticket."""

    content: str
    author: str
    created_at: date


@dataclass
class TicketAction:
    """One entry of a ticket's history log."""

    action: ActionType
    by: str
    timestamp: date
    from_status: Status | None = None
    to_status: Status | None = None
    milestone: str | None = None

    @classmethod
    def assigned(cls, developer: str, timestamp: date) -> "TicketAction":
        return cls(ActionType.ASSIGNED, developer, timestamp)

    @classmethod
    def de_assigned(cls, developer: str, timestamp: date) -> "TicketAction":
        return cls(ActionType.DE_ASSIGNED, developer, timestamp)

    @classmethod
    def status_changed(
        cls, from_status: Status, to_status: Status, by: str, timestamp: date
    ) -> "TicketAction":
        return cls(
            ActionType.STATUS_CHANGED, by, timestamp, from_status=from_status, to_status=to_status
        )

    @classmethod
    def added_to_milestone(cls, milestone: str, manager: str, timestamp: date) -> "TicketAction":
        return cls(ActionType.ADDED_TO_MILESTONE, manager, timestamp, milestone=milestone)


@dataclass
class Ticket:
    """A reported bug, feature request or piece of UI feedback."""

    id: int
    type: TicketType
    title: str
    priority: Priority
    expertise_area: ExpertiseArea
    reported_by: str  # "" for anonymous reports
    created_at: date
    status: Status = Status.OPEN
    description: str | None = None
    assigned_to: str | None = None
    assigned_at: date | None = None
    solved_at: date | None = None
    first_solved_at: date | None = None  # write-once
    days_to_resolve: int = 0
    comments: list[Comment] = field(default_factory=list)  # most recent first
    history: list[TicketAction] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_anonymous(self) -> bool:
        return not self.reported_by

    @property
    def is_assigned(self) -> bool:
        return bool(self.assigned_to)


@dataclass
class User:
    """A reporter, developer or manager."""

    username: str
    email: str
    role: Role
    hire_date: date | None = None
    expertise_area: ExpertiseArea | None = None
    seniority: Seniority | None = None
    subordinates: list[str] = field(default_factory=list)
    tickets: list[Ticket] = field(default_factory=list, repr=False)
    assigned_tickets: list[Ticket] = field(default_factory=list, repr=False)
    notifications: list[str] = field(default_factory=list, repr=False)


@dataclass
class Milestone:
    """A named group of tickets sharing a due date."""

    name: str
    due_date: date
    created_by: str
    created_at: date
    blocking_for: list[str] = field(default_factory=list)
    ticket_ids: list[int] = field(default_factory=list)
    assigned_devs: list[str] = field(default_factory=list)
    tickets: list[Ticket] = field(default_factory=list, repr=False)
    status: MilestoneStatus = MilestoneStatus.ACTIVE
    is_blocked: bool = False
    last_priority_increase: date | None = None
    # one-way latches
    notified_one_day_before: bool = False
    was_blocked_before_due: bool = False
    was_completed: bool = False
    # derived, recomputed daily
    days_until_due: int = 0
    overdue_by: int = 0
    frozen_days_until_due: int = 0
    frozen_overdue_by: int = 0
    open_ticket_ids: list[int] = field(default_factory=list)
    closed_ticket_ids: list[int] = field(default_factory=list)
    completion_percentage: float = 0.0

    def __post_init__(self) -> None:
        if self.last_priority_increase is None:
            self.last_priority_increase = self.created_at
