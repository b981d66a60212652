from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from typing import Callable, Mapping, Optional

from ..core.config import client_env_prefix
from ..core.exceptions import PreconditionFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    user: str
    password: str = field(repr=False)


CredentialProvider = Callable[[str], Credentials]


class EnvironmentCredentialProvider:
    """Read database credentials the CI job exported for a client.

    Looks for <CLIENT>_DB_USER / <CLIENT>_DB_PASSWORD first and falls back
    to DB_USER / DB_PASSWORD.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = environ

    def _get(self, key: str) -> str:
        environ = os.environ if self._environ is None else self._environ
        return (environ.get(key) or "").strip()

    def __call__(self, client: str) -> Credentials:
        prefix = client_env_prefix(client)
        user_keys = [f"{prefix}_DB_USER", "DB_USER"] if prefix else ["DB_USER"]
        password_keys = [f"{prefix}_DB_PASSWORD", "DB_PASSWORD"] if prefix else ["DB_PASSWORD"]

        user = next((self._get(key) for key in user_keys if self._get(key)), "")
        password = next((self._get(key) for key in password_keys if self._get(key)), "")

        missing = []
        if not user:
            missing.append(" or ".join(user_keys))
        if not password:
            missing.append(" or ".join(password_keys))
        if missing:
            raise PreconditionFailure(f"Missing database credentials for client '{client}': set {'; '.join(missing)}")

        logger.info(f"Using database user '{user}' for client '{client}'")
        return Credentials(user=user, password=password)
