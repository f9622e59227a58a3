"""Process-wide workflow state, passed explicitly to every operation."""

import logging
from collections.abc import Iterable, Iterator
from datetime import date

from ticket_workflow.clock import Clock
from ticket_workflow.config import Config
from ticket_workflow.milestones import update_daily_state
from ticket_workflow.models import Milestone, Ticket, User

logger = logging.getLogger(__name__)


class WorkflowContext:
    """User registry, milestone registry, clock and ticket id counter."""

    def __init__(self, users: Iterable[User] = (), config: Config | None = None) -> None:
        self.config = config or Config()
        self.users: dict[str, User] = {user.username: user for user in users}
        self.milestones: list[Milestone] = []
        self.clock = Clock(self._process_day, self.config.phase_length_days)
        self.next_ticket_id = 0

    @property
    def today(self) -> date:
        """Current simulated date."""
        if self.clock.current_date is None:
            raise RuntimeError("Clock has not been started")
        return self.clock.current_date

    @property
    def timestamp(self) -> date:
        """Timestamp of the command being processed."""
        if self.clock.timestamp is None:
            raise RuntimeError("Clock has not been started")
        return self.clock.timestamp

    def advance_clock(self, day: date) -> None:
        self.clock.advance_to(day)

    def allocate_ticket_id(self) -> int:
        ticket_id = self.next_ticket_id
        self.next_ticket_id += 1
        return ticket_id

    def find_user(self, username: str | None) -> User | None:
        if not username:
            return None
        return self.users.get(username)

    def all_tickets(self) -> Iterator[Ticket]:
        for user in self.users.values():
            yield from user.tickets

    def find_ticket(self, ticket_id: int) -> Ticket | None:
        for ticket in self.all_tickets():
            if ticket.id == ticket_id:
                return ticket
        return None

    def find_milestone(self, name: str) -> Milestone | None:
        for milestone in self.milestones:
            if milestone.name == name:
                return milestone
        return None

    def milestone_for_ticket(self, ticket_id: int) -> Milestone | None:
        """Owning milestone of a ticket, first match in creation order."""
        for milestone in self.milestones:
            if ticket_id in milestone.ticket_ids:
                return milestone
        return None

    def notify(self, username: str, message: str) -> None:
        user = self.find_user(username)
        if user is None:
            logger.debug("Dropping notification for unknown user %s", username)
            return
        user.notifications.append(message)

    def _process_day(self, day: date) -> None:
        for milestone in self.milestones:
            update_daily_state(self, milestone, day)
