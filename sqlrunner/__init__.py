"""Ad-hoc SQL runner.

Validates free-text SQL submitted as CI build parameters, wraps it in a
transaction with a row-count preview, and runs it with psql against the
client database chosen by branch and client selector.

Package Structure:
    core/       - Core infrastructure (config, exceptions, report models)
    security/   - SQL guard and its keyword policy
    pipeline/   - Environment mapping, credentials, approval, psql execution
    tools/      - Command-line entry points
"""

from .core.config import (
    Environment,
    Settings,
    get_settings,
    get_cached_settings,
    clear_settings_cache,
)
from .core.exceptions import (
    ApprovalError,
    ExecutionFailure,
    PolicyViolation,
    PreconditionFailure,
    SqlRunnerError,
)
from .security import (
    GuardPolicy,
    GuardResult,
    GuardStatus,
    LeadingVerb,
    SqlGuard,
    SqlRequest,
    load_guard_policy,
    validate,
)
from .pipeline import BranchMap, RunReport, RunRequest, SqlRunner

__version__ = "0.1.0"

__all__ = [
    # Core
    "Environment",
    "Settings",
    "get_settings",
    "get_cached_settings",
    "clear_settings_cache",
    "ApprovalError",
    "ExecutionFailure",
    "PolicyViolation",
    "PreconditionFailure",
    "SqlRunnerError",
    # Security
    "GuardPolicy",
    "GuardResult",
    "GuardStatus",
    "LeadingVerb",
    "SqlGuard",
    "SqlRequest",
    "load_guard_policy",
    "validate",
    # Pipeline
    "BranchMap",
    "RunReport",
    "RunRequest",
    "SqlRunner",
]
