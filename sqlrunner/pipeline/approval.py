"""Manual approval gate for protected environments."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import sys
import threading
from typing import Callable, Optional, TextIO

from ..core.config import Environment
from ..core.exceptions import ApprovalError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovalRequest:
    client: str
    database: str
    environment: Environment
    host: str
    script: str


Approver = Callable[[ApprovalRequest], bool]


def auto_approve(request: ApprovalRequest) -> bool:
    """Approver for runs the orchestrator has already approved."""
    logger.info(f"Pre-approved run on {request.environment.value} ({request.host}/{request.database})")
    return True


def deny_all(request: ApprovalRequest) -> bool:
    return False


class ConsoleApprover:
    """Ask an operator on the terminal, waiting at most `timeout` seconds.

    Only an explicit "yes" approves. Without a TTY nobody can answer, so the
    run is denied straight away.
    """

    def __init__(self, timeout: float = 600, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        self.timeout = timeout
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stderr

    def _prompt(self, request: ApprovalRequest) -> None:
        self.stdout.write(
            f"\nAbout to run on {request.environment.value.upper()} "
            f"({request.host}/{request.database}) for client '{request.client}':\n\n"
            f"{request.script}\n"
            f"Type 'yes' within {int(self.timeout)}s to proceed: "
        )
        self.stdout.flush()

    def __call__(self, request: ApprovalRequest) -> bool:
        isatty = getattr(self.stdin, "isatty", None)
        if isatty is None or not isatty():
            logger.warning("No interactive terminal for approval; denying run")
            return False

        self._prompt(request)
        answer: list[str] = []

        def _read() -> None:
            answer.append(self.stdin.readline())

        reader = threading.Thread(target=_read, daemon=True)
        reader.start()
        reader.join(self.timeout)

        if reader.is_alive() or not answer:
            raise ApprovalError(f"No approval received within {int(self.timeout)}s")

        approved = answer[0].strip().lower() == "yes"
        logger.info(f"Operator {'approved' if approved else 'declined'} run on {request.environment.value}")
        return approved
