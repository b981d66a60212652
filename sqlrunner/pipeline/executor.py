"""Script file handling and psql invocation."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
import subprocess
import tempfile
from typing import Callable, Optional

from ..core.exceptions import ExecutionFailure
from .credentials import Credentials

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Target:
    host: str
    port: int
    database: str


@dataclass(frozen=True)
class ExecutionResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""


Invoker = Callable[[Path, Target, Credentials], ExecutionResult]


def write_script(script: str, work_dir: Optional[str] = None) -> Path:
    """Write the wrapped script to a fresh .sql file and return its path."""
    if work_dir:
        Path(work_dir).mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix="adhoc_", suffix=".sql", dir=work_dir or None)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(script)
    logger.debug(f"Wrote SQL script to {name}")
    return Path(name)


def cleanup_script(path: Path) -> None:
    try:
        path.unlink()
        logger.debug(f"Removed SQL script {path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove SQL script {path}: {e}")


class PsqlInvoker:
    """Run a script file through the psql command-line client.

    Credentials go through PGUSER/PGPASSWORD so they never show up in the
    process list.
    """

    def __init__(self, psql_path: str = "psql", timeout: int = 600):
        self.psql_path = psql_path
        self.timeout = timeout

    def build_command(self, script_path: Path, target: Target) -> list[str]:
        return [
            self.psql_path,
            "-X",
            "-v", "ON_ERROR_STOP=1",
            "-h", target.host,
            "-p", str(target.port),
            "-d", target.database,
            "-f", str(script_path),
        ]

    def __call__(self, script_path: Path, target: Target, credentials: Credentials) -> ExecutionResult:
        env = os.environ.copy()
        env["PGUSER"] = credentials.user
        env["PGPASSWORD"] = credentials.password

        command = self.build_command(script_path, target)
        logger.info(f"Running psql against {target.host}:{target.port}/{target.database}")

        try:
            completed = subprocess.run(
                command,
                env=env,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise ExecutionFailure(f"Database client not found: {self.psql_path}") from e
        except subprocess.TimeoutExpired as e:
            raise ExecutionFailure(f"psql timed out after {self.timeout}s") from e

        if completed.returncode != 0:
            logger.error(f"psql exited with code {completed.returncode}: {completed.stderr.strip()[:500]}")
            raise ExecutionFailure(
                f"psql exited with code {completed.returncode}",
                returncode=completed.returncode,
                stderr=completed.stderr,
            )

        return ExecutionResult(
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )
