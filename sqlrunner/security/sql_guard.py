"""SQL guard for ad-hoc statements.

Checks a single free-text statement against a GuardPolicy (allowed leading
verbs, forbidden keywords) and, when it passes, wraps it in a transaction
with a SELECT COUNT(*) preview for DELETE/UPDATE.

The FROM clause used for the preview is found by plain substring search:
everything from the first FROM keyword to the end of the statement,
ORDER BY/LIMIT included. It is not a parser and does not look inside
subqueries, string literals or comments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import re
from typing import Optional

import sqlparse

from ..core.exceptions import PolicyViolation
from ..core.models import GuardReport
from .policy import GuardPolicy, LeadingVerb

logger = logging.getLogger(__name__)

_LEADING_WORD = re.compile(r"^([A-Za-z_]\w*)")
_FROM = re.compile(r"\bFROM\b", re.IGNORECASE)
_WHERE = re.compile(r"\bWHERE\b", re.IGNORECASE)
_UPDATE_TARGET = re.compile(r"^UPDATE\s+(?P<target>.+?)\s+SET\b", re.IGNORECASE | re.DOTALL)

SAFETY_CHECK_MARKER = "-- Safety check"
USER_SQL_MARKER = "-- User SQL"


class GuardStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class SqlRequest:
    """A trimmed statement and the verb it starts with."""
    statement: str
    leading_verb: LeadingVerb


@dataclass(frozen=True)
class GuardResult:
    status: GuardStatus
    reason: Optional[str] = None
    wrapped_script: Optional[str] = None
    request: Optional[SqlRequest] = None
    safety_check: Optional[str] = None
    matched_keywords: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def rejected(cls, reason: str, request: SqlRequest | None = None,
                 matched_keywords: tuple[str, ...] = ()) -> "GuardResult":
        return cls(
            status=GuardStatus.REJECTED,
            reason=reason,
            request=request,
            matched_keywords=matched_keywords,
        )

    @property
    def accepted(self) -> bool:
        return self.status is GuardStatus.ACCEPTED

    def raise_for_status(self) -> str:
        """Return the wrapped script, or raise PolicyViolation if rejected."""
        if not self.accepted or self.wrapped_script is None:
            raise PolicyViolation(self.reason or "statement rejected")
        return self.wrapped_script

    def to_report(self) -> GuardReport:
        return GuardReport(
            status=self.status.value,
            reason=self.reason,
            leading_verb=self.request.leading_verb.value if self.request else None,
            matched_keywords=list(self.matched_keywords),
            safety_check=self.safety_check,
            wrapped_script=self.wrapped_script,
        )


_TRAILING_TERMINATORS = re.compile(r"[\s;]+$")


def _strip_terminator(sql: str) -> str:
    return _TRAILING_TERMINATORS.sub("", sql).strip()


def _terminate(sql: str) -> str:
    # A trailing -- comment would swallow the semicolon
    last_line = sql.rsplit("\n", 1)[-1]
    if "--" in last_line:
        return f"{sql}\n;"
    return f"{sql};"


def _keyword_pattern(keywords) -> Optional[re.Pattern[str]]:
    if not keywords:
        return None
    alternation = "|".join(re.escape(word) for word in sorted(keywords, key=lambda w: (-len(w), w)))
    return re.compile(rf"\b({alternation})\b", re.IGNORECASE)


def compose_script(statement: str, safety_check: str | None = None) -> str:
    """Wrap a statement (and optional preview query) in BEGIN/COMMIT."""
    lines = ["BEGIN;"]
    if safety_check:
        lines.extend([SAFETY_CHECK_MARKER, safety_check])
    lines.extend([USER_SQL_MARKER, _terminate(statement), "COMMIT;"])
    return "\n".join(lines) + "\n"


class SqlGuard:
    """Validate ad-hoc statements against a GuardPolicy.

    Holds only the immutable policy and its compiled pattern, so one
    instance can be shared freely.
    """

    def __init__(self, policy: GuardPolicy | None = None):
        self.policy = policy or GuardPolicy()
        self._forbidden = _keyword_pattern(self.policy.forbidden_keywords)

    def find_forbidden(self, statement: str, verb: LeadingVerb | None = None) -> tuple[str, ...]:
        """Forbidden keywords in the statement, in order of first appearance.

        A keyword the verb needs for its own clause (SET for UPDATE) is
        tolerated once, and only while it still belongs to the first
        statement: a SET after a semicolon is never forgiven.
        """
        if self._forbidden is None:
            return ()

        matches = list(self._forbidden.finditer(statement))
        forgiven = set()
        if verb is not None:
            for word in self.policy.clause_allowance(verb.value):
                first = next((m for m in matches if m.group(1).upper() == word), None)
                if first is not None and ";" not in statement[:first.start()]:
                    forgiven.add(first.start())

        found = [m.group(1).upper() for m in matches if m.start() not in forgiven]
        return tuple(dict.fromkeys(found))

    def leading_verb(self, statement: str) -> Optional[LeadingVerb]:
        match = _LEADING_WORD.match(statement.strip())
        if not match:
            return None
        word = match.group(1).upper()
        if word not in self.policy.allowed_verbs:
            return None
        return LeadingVerb(word)

    def build_safety_check(self, request: SqlRequest) -> Optional[str]:
        """SELECT COUNT(*) over the rows a DELETE/UPDATE would touch.

        Returns None when no FROM clause can be located.
        """
        statement = request.statement
        match = _FROM.search(statement)
        if match:
            clause = statement[match.start():]
        elif request.leading_verb is LeadingVerb.UPDATE:
            clause = self._update_clause(statement)
        else:
            clause = None

        if not clause:
            return None
        return _terminate(f"SELECT COUNT(*) {clause.strip()}")

    @staticmethod
    def _update_clause(statement: str) -> Optional[str]:
        # UPDATE <target> SET ... [WHERE ...] -> FROM <target> [WHERE ...]
        match = _UPDATE_TARGET.match(statement)
        if not match:
            return None
        target = match.group("target").strip()
        if ";" in target:
            return None
        where = _WHERE.search(statement, match.end())
        if where:
            return f"FROM {target} {statement[where.start():]}"
        return f"FROM {target}"

    def validate(self, statement: str | None) -> GuardResult:
        candidate = _strip_terminator(statement or "")
        if not candidate:
            return GuardResult.rejected("empty statement")

        verb = self.leading_verb(candidate)

        forbidden = self.find_forbidden(candidate, verb)
        if forbidden:
            label = "keywords" if len(forbidden) > 1 else "keyword"
            reason = f"forbidden {label}: {', '.join(forbidden)}"
            logger.debug(f"Rejected statement: {reason}")
            return GuardResult.rejected(reason, matched_keywords=forbidden)

        if verb is None:
            reason = f"must start with {self.policy.describe_verbs()}"
            logger.debug(f"Rejected statement: {reason}")
            return GuardResult.rejected(reason)

        request = SqlRequest(statement=candidate, leading_verb=verb)

        if self.policy.single_statement:
            statements = [part for part in sqlparse.split(candidate) if _strip_terminator(part)]
            if len(statements) != 1:
                return GuardResult.rejected(f"expected 1 statement, got {len(statements)}", request=request)

        safety_check = None
        if verb is not LeadingVerb.SELECT:
            safety_check = self.build_safety_check(request)
            if safety_check is None:
                logger.debug("Rejected statement: cannot locate FROM clause")
                return GuardResult.rejected("cannot locate FROM clause", request=request)

        return GuardResult(
            status=GuardStatus.ACCEPTED,
            wrapped_script=compose_script(candidate, safety_check),
            request=request,
            safety_check=safety_check,
        )


_default_guard: SqlGuard | None = None


def validate(statement: str | None, policy: GuardPolicy | None = None) -> GuardResult:
    """Validate with the given policy, or the built-in default policy."""
    global _default_guard
    if policy is not None:
        return SqlGuard(policy).validate(statement)
    if _default_guard is None:
        _default_guard = SqlGuard()
    return _default_guard.validate(statement)
