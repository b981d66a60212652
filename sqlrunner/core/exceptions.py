"""Custom exceptions for the SQL runner."""

from __future__ import annotations


class SqlRunnerError(Exception):
    """Base class for every error raised by the runner."""

    exit_code = 1


class PolicyViolation(SqlRunnerError):
    """Raised when the guard rejects a statement."""

    exit_code = 2

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class PreconditionFailure(SqlRunnerError):
    """Raised when the run cannot start: missing credentials, unknown branch, bad config."""

    exit_code = 3


class ApprovalError(PreconditionFailure):
    """Raised when a gated environment is not approved in time."""

    pass


class ExecutionFailure(SqlRunnerError):
    """Raised when the database client fails or exits non-zero."""

    exit_code = 4

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
