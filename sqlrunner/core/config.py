"""Runner configuration loaded from environment variables."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import os
import re
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


class Environment(str, Enum):
    """Deployment environments a branch can map to."""
    DEV = "dev"
    STAGE = "stage"
    PROD = "prod"


DEFAULT_BRANCH_ENVIRONMENTS: dict[str, Environment] = {
    "develop": Environment.DEV,
    "dev": Environment.DEV,
    "stage": Environment.STAGE,
    "staging": Environment.STAGE,
    "release": Environment.STAGE,
    "main": Environment.PROD,
    "master": Environment.PROD,
}


def _is_truthy(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "y")


def client_env_prefix(client: str) -> str:
    """Turn a client selector into an environment variable prefix.

    "acme-eu" -> "ACME_EU"
    """
    return re.sub(r"[^A-Za-z0-9]+", "_", client.strip()).strip("_").upper()


@dataclass(frozen=True)
class Settings:
    """Runner settings."""
    # Optional YAML file with `guard:` and `branches:` sections
    config_path: str

    # Branch -> environment overrides from BRANCH_ENVIRONMENTS
    branch_overrides: dict[str, str] = field(default_factory=dict)

    # Database targets
    hosts: dict[str, str] = field(default_factory=dict)
    db_port: int = 5432

    # psql invocation
    psql_path: str = "psql"
    psql_timeout: int = 600
    work_dir: str = ""
    keep_script: bool = False

    # Approval gate
    approval_environments: tuple[str, ...] = (Environment.PROD.value,)
    approval_timeout: int = 600

    log_level: str = "INFO"

    def host_for(self, environment: Environment) -> Optional[str]:
        """Default host for an environment (no client override)."""
        return self.hosts.get(environment.value) or None

    def requires_approval(self, environment: Environment) -> bool:
        return environment.value in self.approval_environments


def _parse_pairs(raw: str) -> dict[str, str]:
    """Parse "a=dev,b=prod" into a dict."""
    result = {}
    if not raw:
        return result

    for part in raw.split(","):
        if "=" in part:
            key, value = part.split("=", 1)
            if key.strip() and value.strip():
                result[key.strip()] = value.strip().lower()

    return result


def get_settings() -> Settings:
    """Load settings from environment variables."""
    base_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
    default_config = os.path.join(base_dir, "config", "sql_runner.yaml")

    hosts = {}
    for environment in Environment:
        host = os.getenv(f"DB_HOST_{environment.value.upper()}", "")
        if host:
            hosts[environment.value] = host

    approval = os.getenv("APPROVAL_ENVIRONMENTS", Environment.PROD.value)

    return Settings(
        config_path=os.getenv("SQL_RUNNER_CONFIG_PATH", default_config),
        branch_overrides=_parse_pairs(os.getenv("BRANCH_ENVIRONMENTS", "")),

        # Targets
        hosts=hosts,
        db_port=int(os.getenv("DB_PORT", "5432")),

        # psql
        psql_path=os.getenv("PSQL_PATH", "psql"),
        psql_timeout=int(os.getenv("PSQL_TIMEOUT", "600")),
        work_dir=os.getenv("SQL_RUNNER_WORK_DIR", ""),
        keep_script=_is_truthy(os.getenv("SQL_RUNNER_KEEP_SCRIPT", "0")),

        # Approval
        approval_environments=tuple(
            item.strip().lower() for item in approval.split(",") if item.strip()
        ),
        approval_timeout=int(os.getenv("APPROVAL_TIMEOUT", "600")),

        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


# Singleton for caching settings
_settings_cache: Optional[Settings] = None


def get_cached_settings() -> Settings:
    """Get cached settings (loads once)."""
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = get_settings()
    return _settings_cache


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    global _settings_cache
    _settings_cache = None
