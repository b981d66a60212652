"""Pipeline glue around the SQL guard.

Branch/environment mapping, credentials, approval gate and psql execution.
"""

from .approval import ApprovalRequest, ConsoleApprover, auto_approve, deny_all
from .credentials import Credentials, EnvironmentCredentialProvider
from .environments import BranchMap, normalize_branch, resolve_host
from .executor import ExecutionResult, PsqlInvoker, Target, cleanup_script, write_script
from .runner import RunReport, RunRequest, SqlRunner

__all__ = [
    "ApprovalRequest",
    "BranchMap",
    "ConsoleApprover",
    "Credentials",
    "EnvironmentCredentialProvider",
    "ExecutionResult",
    "PsqlInvoker",
    "RunReport",
    "RunRequest",
    "SqlRunner",
    "Target",
    "auto_approve",
    "cleanup_script",
    "deny_all",
    "normalize_branch",
    "resolve_host",
    "write_script",
]
