"""Shared test fixtures."""

from __future__ import annotations

import os
import re

import pytest

from sqlrunner.core.config import Settings, clear_settings_cache

_RUNNER_ENV = re.compile(
    r"^(DB_|[A-Z0-9_]+_DB_(USER|PASSWORD|HOST_[A-Z]+)$|BRANCH_ENVIRONMENTS$|APPROVAL_|PSQL_|SQL_RUNNER_|LOG_LEVEL$"
    r"|BRANCH_NAME$|GIT_BRANCH$|CI_COMMIT_REF_NAME$|GITHUB_REF_NAME$)"
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's shell and .env out of every test."""
    for key in list(os.environ):
        if _RUNNER_ENV.match(key):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        config_path=str(tmp_path / "missing.yaml"),
        hosts={"dev": "pg-dev.internal", "stage": "pg-stage.internal", "prod": "pg-prod.internal"},
        work_dir=str(tmp_path / "work"),
    )
