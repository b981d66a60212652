"""Branch -> environment mapping and host lookup."""

from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

from ..core.config import DEFAULT_BRANCH_ENVIRONMENTS, Environment, Settings, client_env_prefix
from ..core.exceptions import PreconditionFailure
from ..security.policy import load_config_section

logger = logging.getLogger(__name__)

_BRANCH_PREFIXES = ("refs/heads/", "origin/")


def normalize_branch(branch: str) -> str:
    """Strip ref prefixes CI systems put in front of branch names."""
    name = "" if branch is None else str(branch).strip()
    for prefix in _BRANCH_PREFIXES:
        if name.startswith(prefix):
            name = name[len(prefix):]
    return name


def _as_environment(value: Environment | str, branch: str) -> Environment:
    if isinstance(value, Environment):
        return value
    try:
        return Environment(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(env.value for env in Environment)
        raise PreconditionFailure(
            f"Branch '{branch}' maps to unknown environment '{value}' (expected one of: {allowed})"
        ) from None


class BranchMap:
    """Maps source-control branches to deployment environments."""

    def __init__(self, mapping: Optional[Mapping[str, Environment | str]] = None):
        source = DEFAULT_BRANCH_ENVIRONMENTS if mapping is None else mapping
        self._mapping: dict[str, Environment] = {
            normalize_branch(str(branch)): _as_environment(env, str(branch)) for branch, env in source.items()
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "BranchMap":
        """Defaults, then the config file's `branches:` section, then BRANCH_ENVIRONMENTS."""
        mapping: dict[str, Environment | str] = dict(DEFAULT_BRANCH_ENVIRONMENTS)
        mapping.update(load_config_section(settings.config_path, "branches"))
        mapping.update(settings.branch_overrides)
        return cls(mapping)

    @property
    def branches(self) -> dict[str, Environment]:
        return dict(self._mapping)

    def resolve(self, branch: str) -> Environment:
        name = normalize_branch(branch)
        if not name:
            raise PreconditionFailure("Branch name is required to choose an environment")
        environment = self._mapping.get(name)
        if environment is None:
            known = ", ".join(sorted(self._mapping))
            raise PreconditionFailure(f"Unrecognized branch '{name}' (known branches: {known})")
        logger.info(f"Branch '{name}' -> environment '{environment.value}'")
        return environment


def resolve_host(settings: Settings, environment: Environment, client: str) -> str:
    """Host for a client in an environment.

    <CLIENT>_DB_HOST_<ENV> wins over the shared DB_HOST_<ENV>.
    """
    suffix = environment.value.upper()
    prefix = client_env_prefix(client)
    if prefix:
        host = os.getenv(f"{prefix}_DB_HOST_{suffix}", "").strip()
        if host:
            return host

    host = settings.host_for(environment)
    if not host:
        raise PreconditionFailure(
            f"No database host configured for environment '{environment.value}' "
            f"(set {prefix + '_' if prefix else ''}DB_HOST_{suffix} or DB_HOST_{suffix})"
        )
    return host
