"""Core infrastructure module.

Contains configuration, report models, and exceptions.
"""

from .config import (
    Environment,
    Settings,
    client_env_prefix,
    get_settings,
    get_cached_settings,
    clear_settings_cache,
)
from .exceptions import (
    ApprovalError,
    ExecutionFailure,
    PolicyViolation,
    PreconditionFailure,
    SqlRunnerError,
)
from .models import GuardReport, RunReportModel

__all__ = [
    # Config
    "Environment",
    "Settings",
    "client_env_prefix",
    "get_settings",
    "get_cached_settings",
    "clear_settings_cache",
    # Exceptions
    "ApprovalError",
    "ExecutionFailure",
    "PolicyViolation",
    "PreconditionFailure",
    "SqlRunnerError",
    # Models
    "GuardReport",
    "RunReportModel",
]
