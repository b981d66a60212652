"""Validate one SQL statement and print its transaction-wrapped script.

Usage:
    sql-guard "DELETE FROM accounts WHERE id = 5"
    echo "SELECT * FROM accounts" | sql-guard
    sql-guard --file change.sql --json
    python -m sqlrunner.tools.guard --policy config/sql_runner.yaml "UPDATE ..."

Exit codes: 0 accepted, 2 rejected, 3 bad policy file.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
from typing import Optional, Sequence

from ..core.config import get_settings
from ..core.exceptions import PolicyViolation, PreconditionFailure
from ..security.policy import load_guard_policy
from ..security.sql_guard import SqlGuard

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str, verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def read_sql(sql: Optional[str], file: Optional[Path]) -> str:
    """SQL from the positional argument, a file, or stdin ("-" or nothing)."""
    if file is not None:
        return file.read_text(encoding="utf-8")
    if sql is not None and sql != "-":
        return sql
    return sys.stdin.read()


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Check an ad-hoc SQL statement and wrap it in a transaction with a row-count preview"
    )
    parser.add_argument("sql", nargs="?", help="SQL statement (reads stdin when omitted or '-')")
    parser.add_argument("--file", "-f", type=Path, default=None, help="Read the statement from a file")
    parser.add_argument(
        "--policy",
        default=settings.config_path,
        help="YAML/JSON file with a `guard:` section",
    )
    parser.add_argument("--json", action="store_true", help="Print a JSON report instead of the script")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    configure_logging(settings.log_level, args.verbose)

    try:
        policy = load_guard_policy(args.policy)
        sql = read_sql(args.sql, args.file)
    except PreconditionFailure as e:
        print(f"error: {e}", file=sys.stderr)
        return e.exit_code
    except OSError as e:
        print(f"error: cannot read SQL: {e}", file=sys.stderr)
        return PreconditionFailure.exit_code

    result = SqlGuard(policy).validate(sql)

    if args.json:
        print(result.to_report().model_dump_json(indent=2))
    elif result.accepted:
        sys.stdout.write(result.wrapped_script or "")
    else:
        print(f"error: {result.reason}", file=sys.stderr)

    return 0 if result.accepted else PolicyViolation.exit_code


if __name__ == "__main__":
    sys.exit(main())
