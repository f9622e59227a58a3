"""Exception hierarchy for the ticket workflow engine."""


class WorkflowError(Exception):
    """Base exception for workflow errors.

    The message is the rejection reason reported back for the command.
    """

    pass


class ConfigNotFoundError(WorkflowError):
    """Configuration file not found."""

    pass


class InvalidConfigError(WorkflowError):
    """Configuration is invalid."""

    pass


class PermissionDeniedError(WorkflowError):
    """User role is not allowed to run the command."""

    def __init__(self, required_role: str, user_role: str) -> None:
        super().__init__(
            "The user does not have permission to execute this command: "
            f"required role {required_role}; user role {user_role}."
        )
        self.required_role = required_role
        self.user_role = user_role


class ReportRejectedError(WorkflowError):
    """Ticket report was rejected."""

    pass


class AssignmentError(WorkflowError):
    """Developer is not eligible for the ticket."""

    pass


class StatusChangeError(WorkflowError):
    """Status change or its undo was rejected."""

    pass


class CommentRejectedError(WorkflowError):
    """Comment or its undo was rejected."""

    pass


class MilestoneError(WorkflowError):
    """Milestone could not be created."""

    pass


class SearchError(WorkflowError):
    """Search was rejected."""

    pass
