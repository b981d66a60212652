"""Security and validation module.

Contains the SQL guard and its policy.
"""

from .policy import GuardPolicy, LeadingVerb, load_guard_policy
from .sql_guard import GuardResult, GuardStatus, SqlGuard, SqlRequest, compose_script, validate

__all__ = [
    "GuardPolicy",
    "GuardResult",
    "GuardStatus",
    "LeadingVerb",
    "SqlGuard",
    "SqlRequest",
    "compose_script",
    "load_guard_policy",
    "validate",
]
