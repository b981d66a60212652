"""Run an ad-hoc SQL statement against a client database.

Intended as the single step of a CI job whose build parameters are the
client, the database and the SQL text.

Usage:
    sql-runner --client acme --database billing --branch main "DELETE FROM jobs WHERE id = 7"
    sql-runner --client acme --database billing --dry-run --file change.sql
    python -m sqlrunner.tools.run --client acme --database billing --approve < change.sql

Exit codes: 0 success, 2 rejected SQL, 3 precondition/approval failure, 4 psql failure.
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path
import sys
from typing import Optional, Sequence

from ..core.config import get_settings
from ..core.exceptions import ExecutionFailure, PolicyViolation, PreconditionFailure, SqlRunnerError
from ..core.models import RunReportModel
from ..pipeline.approval import auto_approve
from ..pipeline.runner import RunRequest, SqlRunner
from .guard import configure_logging, read_sql

# Variables CI systems use for the branch being built
BRANCH_VARIABLES = ("SQL_RUNNER_BRANCH", "BRANCH_NAME", "GIT_BRANCH", "CI_COMMIT_REF_NAME", "GITHUB_REF_NAME")


def default_branch() -> str:
    for key in BRANCH_VARIABLES:
        value = os.getenv(key, "").strip()
        if value:
            return value
    return ""


def _failure_status(error: SqlRunnerError) -> str:
    return "rejected" if isinstance(error, PolicyViolation) else "failed"


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Validate, wrap and run ad-hoc SQL on a client database")
    parser.add_argument("sql", nargs="?", help="SQL statement (reads stdin when omitted or '-')")
    parser.add_argument("--file", "-f", type=Path, default=None, help="Read the statement from a file")
    parser.add_argument("--client", required=True, help="Client selector (credential and host prefix)")
    parser.add_argument("--database", "-d", required=True, help="Target database name")
    parser.add_argument(
        "--branch",
        default=default_branch(),
        help=f"Branch being built (default: ${' / $'.join(BRANCH_VARIABLES)})",
    )
    parser.add_argument("--dry-run", action="store_true", help="Validate and print the script without executing")
    parser.add_argument(
        "--approve",
        action="store_true",
        help="Treat the run as already approved (approval handled by the CI system)",
    )
    parser.add_argument("--json", action="store_true", help="Print a JSON report")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    configure_logging(settings.log_level, args.verbose)

    try:
        sql = read_sql(args.sql, args.file)
    except OSError as e:
        print(f"error: cannot read SQL: {e}", file=sys.stderr)
        return PreconditionFailure.exit_code

    request = RunRequest(
        client=args.client,
        database=args.database,
        sql=sql,
        branch=args.branch,
        dry_run=args.dry_run,
    )

    try:
        runner = SqlRunner(settings=settings, approver=auto_approve if args.approve else None)
        report = runner.run(request)
    except SqlRunnerError as e:
        if args.json:
            model = RunReportModel(
                status=_failure_status(e),
                client=request.client,
                database=request.database,
                branch=request.branch,
                returncode=e.returncode if isinstance(e, ExecutionFailure) else None,
                message=str(e),
                stderr=e.stderr if isinstance(e, ExecutionFailure) else "",
            )
            print(model.model_dump_json(indent=2))
        else:
            print(f"error: {e}", file=sys.stderr)
            if isinstance(e, ExecutionFailure) and e.stderr:
                sys.stderr.write(e.stderr)
        return e.exit_code

    if args.json:
        print(report.to_model().model_dump_json(indent=2))
    elif report.dry_run:
        print(f"-- Dry run: {report.environment.value} {report.target.host}/{report.target.database}")
        sys.stdout.write(report.guard.wrapped_script or "")
    else:
        if report.execution and report.execution.stdout:
            sys.stdout.write(report.execution.stdout)
        print(f"SQL executed successfully on {report.environment.value} ({report.target.host}/{report.target.database})")

    return 0


if __name__ == "__main__":
    sys.exit(main())
