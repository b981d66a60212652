from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import json
import logging
import os
from typing import Any, Iterable, Mapping

import yaml

from ..core.exceptions import PreconditionFailure

logger = logging.getLogger(__name__)


class LeadingVerb(str, Enum):
    """Statement verbs the guard knows how to wrap."""
    SELECT = "SELECT"
    DELETE = "DELETE"
    UPDATE = "UPDATE"


ALLOWED_VERBS = tuple(verb.value for verb in LeadingVerb)

# Statement types and options that must never reach the database
FORBIDDEN_KEYWORDS = frozenset({
    "DROP", "ALTER", "TRUNCATE", "CREATE", "GRANT", "REVOKE", "INSERT",
    "MERGE", "REPLACE", "COMMENT", "SET", "SHOW", "VACUUM", "ANALYZE",
    "COPY", "UNLOGGED", "CLUSTER", "DISCARD", "EXPLAIN", "LISTEN",
    "NOTIFY", "REFRESH", "REINDEX", "RESET", "SECURITY", "UNLISTEN", "WITH",
})

# Forbidden keywords an allowed verb needs once for its own clause
CLAUSE_KEYWORDS = {
    "UPDATE": frozenset({"SET"}),
}


def _word(value: Any) -> str:
    return str(getattr(value, "value", value)).strip().upper()


def _upper_set(values: Iterable[Any]) -> frozenset[str]:
    return frozenset(_word(value) for value in values if _word(value))


@dataclass(frozen=True)
class GuardPolicy:
    allowed_verbs: tuple[str, ...] = ALLOWED_VERBS
    forbidden_keywords: frozenset[str] = FORBIDDEN_KEYWORDS
    clause_keywords: Mapping[str, frozenset[str]] = field(default_factory=lambda: dict(CLAUSE_KEYWORDS))
    single_statement: bool = False

    def __post_init__(self) -> None:
        # Normalise whatever the caller passed in; matching is always upper-case
        verbs = tuple(dict.fromkeys(_word(verb) for verb in self.allowed_verbs if _word(verb)))
        if not verbs:
            raise ValueError("GuardPolicy needs at least one allowed verb")
        unknown = [verb for verb in verbs if verb not in ALLOWED_VERBS]
        if unknown:
            raise ValueError(f"Unsupported verbs: {', '.join(unknown)}")
        object.__setattr__(self, "allowed_verbs", verbs)
        object.__setattr__(self, "forbidden_keywords", _upper_set(self.forbidden_keywords))
        object.__setattr__(
            self,
            "clause_keywords",
            {_word(verb): _upper_set(words) for verb, words in self.clause_keywords.items()},
        )

    def clause_allowance(self, verb: str) -> frozenset[str]:
        return self.clause_keywords.get(verb.upper(), frozenset())

    def describe_verbs(self) -> str:
        """Render the verbs as 'SELECT, DELETE, or UPDATE' for messages."""
        verbs = list(self.allowed_verbs)
        if len(verbs) == 1:
            return verbs[0]
        if len(verbs) == 2:
            return f"{verbs[0]} or {verbs[1]}"
        return f"{', '.join(verbs[:-1])}, or {verbs[-1]}"


def _load_payload(path: str) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        if path.lower().endswith(".json"):
            return json.load(handle) or {}
        return yaml.safe_load(handle) or {}


def load_config_section(path: str | None, section: str) -> dict[str, Any]:
    """Return one top-level section of the runner config file, or {} if absent."""
    if not path:
        return {}
    resolved = os.path.abspath(path)
    if not os.path.exists(resolved):
        return {}

    try:
        payload = _load_payload(resolved)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise PreconditionFailure(f"Cannot read config file {resolved}: {e}") from e

    if not isinstance(payload, dict):
        raise PreconditionFailure(f"Config file {resolved} must contain a mapping")

    data = payload.get(section) or {}
    if not isinstance(data, dict):
        raise PreconditionFailure(f"Section '{section}' in {resolved} must be a mapping")
    return data


def load_guard_policy(path: str | None) -> GuardPolicy:
    """Build a GuardPolicy from the `guard:` section of a YAML/JSON file.

    Keys left out keep their defaults, so a file may override only
    `forbidden_keywords` for example.
    """
    data = load_config_section(path, "guard")
    if not data:
        return GuardPolicy()

    kwargs: dict[str, Any] = {}
    if "allowed_verbs" in data:
        kwargs["allowed_verbs"] = tuple(data["allowed_verbs"] or ())
    if "forbidden_keywords" in data:
        kwargs["forbidden_keywords"] = data["forbidden_keywords"] or ()
    if "clause_keywords" in data:
        kwargs["clause_keywords"] = {
            verb: words or () for verb, words in (data["clause_keywords"] or {}).items()
        }
    if "single_statement" in data:
        kwargs["single_statement"] = bool(data["single_statement"])

    try:
        policy = GuardPolicy(**kwargs)
    except ValueError as e:
        raise PreconditionFailure(f"Invalid guard policy in {path}: {e}") from e

    logger.info(
        f"Loaded guard policy from {path}: verbs={','.join(policy.allowed_verbs)}, "
        f"{len(policy.forbidden_keywords)} forbidden keywords"
    )
    return policy
