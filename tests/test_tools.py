"""Tests for the sql-guard and sql-runner entry points."""

from __future__ import annotations

import io
import json
import subprocess

import pytest

from sqlrunner.pipeline import executor
from sqlrunner.tools import guard as guard_tool
from sqlrunner.tools import run as run_tool


class TestGuardTool:
    """Tests for sql-guard."""

    def test_accepted_prints_script(self, capsys):
        code = guard_tool.main(["SELECT * FROM accounts WHERE id = 5"])
        out, err = capsys.readouterr()
        assert code == 0
        assert out == "BEGIN;\n-- User SQL\nSELECT * FROM accounts WHERE id = 5;\nCOMMIT;\n"

    def test_rejected_exit_code(self, capsys):
        code = guard_tool.main(["DROP TABLE accounts"])
        out, err = capsys.readouterr()
        assert code == 2
        assert out == ""
        assert "error: forbidden keyword: DROP" in err

    def test_reads_stdin(self, capsys, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("DELETE FROM t WHERE id = 1\n"))
        code = guard_tool.main([])
        out, _ = capsys.readouterr()
        assert code == 0
        assert "SELECT COUNT(*) FROM t WHERE id = 1;" in out

    def test_reads_file(self, capsys, tmp_path):
        sql_file = tmp_path / "change.sql"
        sql_file.write_text("UPDATE t SET a = 1 WHERE id = 2;\n", encoding="utf-8")
        code = guard_tool.main(["--file", str(sql_file)])
        out, _ = capsys.readouterr()
        assert code == 0
        assert "UPDATE t SET a = 1 WHERE id = 2;\n" in out

    def test_missing_file(self, capsys, tmp_path):
        code = guard_tool.main(["--file", str(tmp_path / "missing.sql")])
        _, err = capsys.readouterr()
        assert code == 3
        assert "cannot read SQL" in err

    def test_json_report(self, capsys):
        code = guard_tool.main(["--json", "DELETE accounts"])
        out, _ = capsys.readouterr()
        payload = json.loads(out)
        assert code == 2
        assert payload["status"] == "rejected"
        assert payload["reason"] == "cannot locate FROM clause"

    def test_policy_file(self, capsys, tmp_path):
        config = tmp_path / "runner.yaml"
        config.write_text("guard:\n  allowed_verbs: [SELECT]\n", encoding="utf-8")
        code = guard_tool.main(["--policy", str(config), "DELETE FROM t"])
        _, err = capsys.readouterr()
        assert code == 2
        assert "must start with SELECT" in err

    def test_bad_policy_file(self, capsys, tmp_path):
        config = tmp_path / "runner.yaml"
        config.write_text("guard:\n  allowed_verbs: [INSERT]\n", encoding="utf-8")
        code = guard_tool.main(["--policy", str(config), "SELECT 1"])
        _, err = capsys.readouterr()
        assert code == 3
        assert "Unsupported verbs" in err


@pytest.fixture
def runner_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DB_HOST_DEV", "pg-dev.internal")
    monkeypatch.setenv("DB_HOST_PROD", "pg-prod.internal")
    monkeypatch.setenv("ACME_DB_USER", "acme_rw")
    monkeypatch.setenv("ACME_DB_PASSWORD", "pw")
    monkeypatch.setenv("SQL_RUNNER_WORK_DIR", str(tmp_path / "work"))
    monkeypatch.setenv("SQL_RUNNER_CONFIG_PATH", str(tmp_path / "missing.yaml"))


@pytest.fixture
def fake_psql(monkeypatch):
    calls = []

    def fake_run(command, **kwargs):
        calls.append(command)
        return subprocess.CompletedProcess(command, 0, stdout="UPDATE 1\n", stderr="")

    monkeypatch.setattr(executor.subprocess, "run", fake_run)
    return calls


class TestRunTool:
    """Tests for sql-runner."""

    def test_dry_run(self, capsys, runner_env, fake_psql):
        code = run_tool.main(
            ["--client", "acme", "--database", "billing", "--branch", "develop", "--dry-run", "DELETE FROM t"]
        )
        out, _ = capsys.readouterr()
        assert code == 0
        assert out.startswith("-- Dry run: dev pg-dev.internal/billing\nBEGIN;\n")
        assert fake_psql == []

    def test_executes(self, capsys, runner_env, fake_psql):
        code = run_tool.main(
            ["--client", "acme", "--database", "billing", "--branch", "develop", "UPDATE t SET a = 1 WHERE id = 2"]
        )
        out, _ = capsys.readouterr()
        assert code == 0
        assert "UPDATE 1" in out
        assert "SQL executed successfully on dev" in out
        assert fake_psql[0][0] == "psql"

    def test_branch_from_ci_variable(self, capsys, runner_env, fake_psql, monkeypatch):
        monkeypatch.setenv("BRANCH_NAME", "main")
        code = run_tool.main(["--client", "acme", "--database", "billing", "--approve", "SELECT 1"])
        out, _ = capsys.readouterr()
        assert code == 0
        assert "on prod" in out
        assert len(fake_psql) == 1

    def test_prod_without_approval(self, capsys, runner_env, fake_psql, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO(""))
        code = run_tool.main(["--client", "acme", "--database", "billing", "--branch", "main", "SELECT 1"])
        _, err = capsys.readouterr()
        assert code == 3
        assert "was not approved" in err
        assert fake_psql == []

    def test_rejected_json(self, capsys, runner_env, fake_psql):
        code = run_tool.main(
            ["--client", "acme", "--database", "billing", "--branch", "develop", "--json", "TRUNCATE t"]
        )
        out, _ = capsys.readouterr()
        payload = json.loads(out)
        assert code == 2
        assert payload["status"] == "rejected"
        assert payload["message"] == "forbidden keyword: TRUNCATE"

    def test_unknown_branch(self, capsys, runner_env, fake_psql):
        code = run_tool.main(["--client", "acme", "--database", "billing", "--branch", "feature/x", "SELECT 1"])
        _, err = capsys.readouterr()
        assert code == 3
        assert "Unrecognized branch 'feature/x'" in err

    def test_psql_failure(self, capsys, runner_env, monkeypatch):
        def failing_run(command, **kwargs):
            return subprocess.CompletedProcess(command, 3, stdout="", stderr="ERROR:  permission denied\n")

        monkeypatch.setattr(executor.subprocess, "run", failing_run)
        code = run_tool.main(
            ["--client", "acme", "--database", "billing", "--branch", "develop", "--json", "DELETE FROM t"]
        )
        out, _ = capsys.readouterr()
        payload = json.loads(out)
        assert code == 4
        assert payload["status"] == "failed"
        assert payload["returncode"] == 3
        assert "permission denied" in payload["stderr"]
