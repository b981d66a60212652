"""One ad-hoc SQL run: environment, guard, approval, psql, cleanup."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional

from ..core.config import Environment, Settings, get_cached_settings
from ..core.exceptions import ApprovalError, PreconditionFailure
from ..core.models import RunReportModel
from ..security.policy import load_guard_policy
from ..security.sql_guard import GuardResult, SqlGuard
from .approval import ApprovalRequest, Approver, ConsoleApprover
from .credentials import CredentialProvider, EnvironmentCredentialProvider
from .environments import BranchMap, resolve_host
from .executor import ExecutionResult, Invoker, PsqlInvoker, Target, cleanup_script, write_script

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunRequest:
    """Build parameters for one run."""
    client: str
    database: str
    sql: str
    branch: str
    dry_run: bool = False


@dataclass(frozen=True)
class RunReport:
    request: RunRequest
    environment: Environment
    target: Target
    guard: GuardResult
    execution: Optional[ExecutionResult] = None

    @property
    def dry_run(self) -> bool:
        return self.execution is None

    def to_model(self) -> RunReportModel:
        return RunReportModel(
            status="dry_run" if self.dry_run else "succeeded",
            client=self.request.client,
            database=self.request.database,
            branch=self.request.branch,
            environment=self.environment.value,
            host=self.target.host,
            returncode=self.execution.returncode if self.execution else None,
            wrapped_script=self.guard.wrapped_script,
            stdout=self.execution.stdout if self.execution else "",
            stderr=self.execution.stderr if self.execution else "",
        )


class SqlRunner:
    """Wire the guard to its collaborators.

    Every collaborator can be injected; anything left out is built from
    settings.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        guard: Optional[SqlGuard] = None,
        branch_map: Optional[BranchMap] = None,
        credentials: Optional[CredentialProvider] = None,
        approver: Optional[Approver] = None,
        invoker: Optional[Invoker] = None,
    ):
        self.settings = settings or get_cached_settings()
        self.guard = guard or SqlGuard(load_guard_policy(self.settings.config_path))
        self.branch_map = branch_map or BranchMap.from_settings(self.settings)
        self.credentials = credentials or EnvironmentCredentialProvider()
        self.approver = approver or ConsoleApprover(timeout=self.settings.approval_timeout)
        self.invoker = invoker or PsqlInvoker(self.settings.psql_path, self.settings.psql_timeout)

    def _check_request(self, request: RunRequest) -> None:
        if not request.client.strip():
            raise PreconditionFailure("Client selector is required")
        if not request.database.strip():
            raise PreconditionFailure("Database name is required")

    def run(self, request: RunRequest) -> RunReport:
        self._check_request(request)
        environment = self.branch_map.resolve(request.branch)

        result = self.guard.validate(request.sql)
        if not result.accepted:
            logger.warning(f"SQL rejected for client '{request.client}': {result.reason}")
        script = result.raise_for_status()

        target = Target(
            host=resolve_host(self.settings, environment, request.client),
            port=self.settings.db_port,
            database=request.database.strip(),
        )

        if request.dry_run:
            logger.info(f"Dry run: not executing on {target.host}/{target.database}")
            return RunReport(request=request, environment=environment, target=target, guard=result)

        credentials = self.credentials(request.client)

        if self.settings.requires_approval(environment):
            approval = ApprovalRequest(
                client=request.client,
                database=target.database,
                environment=environment,
                host=target.host,
                script=script,
            )
            if not self.approver(approval):
                raise ApprovalError(f"Run on '{environment.value}' was not approved")

        script_path = write_script(script, self.settings.work_dir or None)
        try:
            execution = self.invoker(script_path, target, credentials)
        finally:
            if self.settings.keep_script:
                logger.info(f"Keeping SQL script at {script_path}")
            else:
                cleanup_script(script_path)

        logger.info(f"SQL run succeeded on {environment.value} ({target.host}/{target.database})")
        return RunReport(
            request=request,
            environment=environment,
            target=target,
            guard=result,
            execution=execution,
        )
