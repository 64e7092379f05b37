"""Workflow errors."""

from typing import Optional


class WorkflowError(Exception):
    """Base class for all trellis errors."""


class ConfigurationError(WorkflowError):
    """Invalid or missing configuration."""


class InvalidTargetError(WorkflowError):
    """An integrate or reset target is not an aggregate branch."""


class ProtectedBranchError(WorkflowError):
    """An action was attempted on the base branch or an aggregate branch."""


class GitError(WorkflowError):
    """Git operation error."""


class ToleratedVcsFailure(GitError):
    """A command failed where failure is an expected no-op."""

    def __init__(self, command: str, reason: str) -> None:
        super().__init__(f"{command} failed (ignored): {reason}")
        self.command = command
        self.reason = reason


class FatalVcsFailure(GitError):
    """A command failed and the remaining sequence was abandoned."""

    def __init__(self, command: str, reason: str, log: Optional[list[str]] = None) -> None:
        """Initialize error.

        Args:
            command: The command that failed
            reason: Output or message from git
            log: Every command issued up to and including the failed one
        """
        super().__init__(f"{command} failed: {reason}")
        self.command = command
        self.reason = reason
        self.log = list(log or [])


class ReviewRequestError(WorkflowError):
    """The code review API rejected a request."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MessagingError(WorkflowError):
    """The chat webhook rejected a message."""
