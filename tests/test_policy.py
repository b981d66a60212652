"""Unit tests for guard policy loading."""

from __future__ import annotations

import json

import pytest

from sqlrunner.core.exceptions import PreconditionFailure
from sqlrunner.security.policy import (
    ALLOWED_VERBS,
    FORBIDDEN_KEYWORDS,
    GuardPolicy,
    load_config_section,
    load_guard_policy,
)


class TestGuardPolicy:
    """Tests for the GuardPolicy dataclass."""

    def test_defaults(self):
        policy = GuardPolicy()
        assert policy.allowed_verbs == ("SELECT", "DELETE", "UPDATE")
        assert "DROP" in policy.forbidden_keywords
        assert "WITH" in policy.forbidden_keywords
        assert len(policy.forbidden_keywords) == 27
        assert policy.clause_allowance("update") == frozenset({"SET"})
        assert policy.clause_allowance("DELETE") == frozenset()
        assert policy.single_statement is False

    def test_values_are_normalised(self):
        policy = GuardPolicy(
            allowed_verbs=(" select ", "Delete", "SELECT"),
            forbidden_keywords=["drop", " pg_sleep "],
            clause_keywords={"delete": ["using"]},
        )
        assert policy.allowed_verbs == ("SELECT", "DELETE")
        assert policy.forbidden_keywords == frozenset({"DROP", "PG_SLEEP"})
        assert policy.clause_allowance("DELETE") == frozenset({"USING"})

    def test_requires_a_verb(self):
        with pytest.raises(ValueError):
            GuardPolicy(allowed_verbs=())

    def test_rejects_unknown_verbs(self):
        with pytest.raises(ValueError, match="INSERT"):
            GuardPolicy(allowed_verbs=("SELECT", "INSERT"))

    def test_describe_verbs(self):
        assert GuardPolicy().describe_verbs() == "SELECT, DELETE, or UPDATE"
        assert GuardPolicy(allowed_verbs=("SELECT", "UPDATE")).describe_verbs() == "SELECT or UPDATE"
        assert GuardPolicy(allowed_verbs=("DELETE",)).describe_verbs() == "DELETE"


class TestLoadGuardPolicy:
    """Tests for load_guard_policy / load_config_section."""

    def test_missing_path_gives_defaults(self, tmp_path):
        assert load_guard_policy(None) == GuardPolicy()
        assert load_guard_policy(str(tmp_path / "nope.yaml")) == GuardPolicy()

    def test_file_without_guard_section(self, tmp_path):
        path = tmp_path / "runner.yaml"
        path.write_text("branches:\n  main: prod\n", encoding="utf-8")
        assert load_guard_policy(str(path)) == GuardPolicy()

    def test_partial_override(self, tmp_path):
        path = tmp_path / "runner.yaml"
        path.write_text(
            "guard:\n"
            "  forbidden_keywords: [drop, pg_sleep]\n"
            "  single_statement: true\n",
            encoding="utf-8",
        )
        policy = load_guard_policy(str(path))
        assert policy.forbidden_keywords == frozenset({"DROP", "PG_SLEEP"})
        assert policy.single_statement is True
        assert policy.allowed_verbs == ALLOWED_VERBS

    def test_json_file(self, tmp_path):
        path = tmp_path / "runner.json"
        path.write_text(json.dumps({"guard": {"allowed_verbs": ["SELECT"]}}), encoding="utf-8")
        policy = load_guard_policy(str(path))
        assert policy.allowed_verbs == ("SELECT",)
        assert policy.forbidden_keywords == FORBIDDEN_KEYWORDS

    def test_clause_keywords(self, tmp_path):
        path = tmp_path / "runner.yaml"
        path.write_text("guard:\n  clause_keywords:\n    UPDATE: []\n", encoding="utf-8")
        assert load_guard_policy(str(path)).clause_allowance("UPDATE") == frozenset()

    def test_invalid_verbs_raise_precondition(self, tmp_path):
        path = tmp_path / "runner.yaml"
        path.write_text("guard:\n  allowed_verbs: [INSERT]\n", encoding="utf-8")
        with pytest.raises(PreconditionFailure, match="Unsupported verbs"):
            load_guard_policy(str(path))

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "runner.yaml"
        path.write_text("guard: [unclosed\n", encoding="utf-8")
        with pytest.raises(PreconditionFailure, match="Cannot read config file"):
            load_config_section(str(path), "guard")

    def test_section_must_be_mapping(self, tmp_path):
        path = tmp_path / "runner.yaml"
        path.write_text("guard:\n  - DROP\n", encoding="utf-8")
        with pytest.raises(PreconditionFailure, match="must be a mapping"):
            load_config_section(str(path), "guard")

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "runner.yaml"
        path.write_text("- guard\n", encoding="utf-8")
        with pytest.raises(PreconditionFailure, match="must contain a mapping"):
            load_config_section(str(path), "guard")
