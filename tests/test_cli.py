"""Unit tests for docms.cli — CLI command parsing and execution."""

import argparse
import gzip
from datetime import date, timedelta
from unittest.mock import MagicMock, patch

import httpx
import pytest

import docms.cli as cli_mod
from docms.engine.errors import StartupError


def _ns(**kwargs):
    return argparse.Namespace(**kwargs)


class TestCLIParsing:
    def test_no_command_prints_help(self, capsys):
        assert cli_mod.main([]) == 0
        assert "usage: docms" in capsys.readouterr().out

    def test_module_has_expected_commands(self):
        for name in ("cmd_run", "cmd_validate", "cmd_init_db", "cmd_jobs", "cmd_health", "cmd_cleanup_logs"):
            assert hasattr(cli_mod, name)

    def test_run_collects_remaining_args(self, project_root):
        with patch.object(cli_mod, "cmd_run", return_value=0) as cmd:
            cli_mod.main(["run", "--config", str(project_root / "docms.yaml"), "a", "--b"])
        args = cmd.call_args[0][0]
        assert args.app_args == ["a", "--b"]


class TestCmdRun:
    def test_success(self, project_root):
        with patch("docms.application.main", return_value=0) as bootstrap:
            code = cli_mod.cmd_run(_ns(config=str(project_root / "docms.yaml"), app_args=["x"]))
        assert code == 0
        args, kwargs = bootstrap.call_args
        assert args == (["x"],)
        assert kwargs["config"].name == "TestDocMS"

    def test_startup_error_returns_1(self, project_root, capsys):
        # docms.yaml declares jobs for tasks nobody registered
        code = cli_mod.cmd_run(_ns(config=str(project_root / "docms.yaml"), app_args=[]))
        out = capsys.readouterr().out
        assert code == 1
        assert "[ERROR]" in out
        assert "Caused by: ScheduleError" in out
        assert "Run Successfuly" not in out

    def test_missing_config_file(self, tmp_path, capsys):
        assert cli_mod.cmd_run(_ns(config=str(tmp_path / "nope.yaml"), app_args=[])) == 1
        assert "not found" in capsys.readouterr().out

    def test_startup_error_from_bootstrap(self, project_root, capsys):
        err = StartupError("Runtime context failed to start", component="web")
        with patch("docms.application.main", side_effect=err):
            code = cli_mod.cmd_run(_ns(config=str(project_root / "docms.yaml"), app_args=[]))
        assert code == 1
        assert "[ERROR] Runtime context failed to start" in capsys.readouterr().out


class TestCmdValidate:
    def test_valid(self, project_root, capsys):
        assert cli_mod.cmd_validate(_ns(config=str(project_root / "docms.yaml"))) == 0
        out = capsys.readouterr().out
        assert "[OK] TestDocMS 2.0.0 (staging)" in out
        assert "2 job(s) valid" in out

    def test_invalid_values(self, tmp_path, capsys):
        path = tmp_path / "docms.yaml"
        path.write_text("platform:\n  environment: qa\n", encoding="utf-8")
        assert cli_mod.cmd_validate(_ns(config=str(path))) == 1
        out = capsys.readouterr().out
        assert "[ERROR]" in out
        assert "environment" in out

    def test_invalid_job(self, tmp_path, capsys):
        path = tmp_path / "docms.yaml"
        path.write_text(
            "scheduler:\n  jobs:\n    - name: bad\n      task: t\n      cron: '* *'\n",
            encoding="utf-8",
        )
        assert cli_mod.cmd_validate(_ns(config=str(path))) == 1
        assert "Invalid cron expression" in capsys.readouterr().out


class TestCmdInitDb:
    def test_creates_tables(self, project_root, capsys):
        assert cli_mod.cmd_init_db(_ns(config=str(project_root / "docms.yaml"))) == 0
        assert "[OK] Table ready: job_runs" in capsys.readouterr().out
        assert (project_root / "docms.db").exists()

    def test_unreachable_database(self, tmp_path, capsys):
        path = tmp_path / "docms.yaml"
        path.write_text(
            f"database:\n  url: sqlite:///{(tmp_path / 'no' / 'dir' / 'x.db').as_posix()}\n",
            encoding="utf-8",
        )
        assert cli_mod.cmd_init_db(_ns(config=str(path))) == 1
        assert "[ERROR] Database unavailable" in capsys.readouterr().out


class TestCmdJobs:
    def test_lists_jobs(self, project_root, capsys):
        assert cli_mod.cmd_jobs(_ns(config=str(project_root / "docms.yaml"))) == 0
        out = capsys.readouterr().out
        assert "nightly-reindex" in out
        assert "cron '0 2 * * *'" in out
        assert "every 30.0s (disabled)" in out
        assert "2 job(s), 1 Celery Beat entry" in out

    def test_no_jobs(self, tmp_path, capsys):
        path = tmp_path / "docms.yaml"
        path.write_text("platform:\n  name: Empty\n", encoding="utf-8")
        assert cli_mod.cmd_jobs(_ns(config=str(path))) == 0
        assert "No scheduled jobs configured." in capsys.readouterr().out


class TestCmdHealth:
    def test_healthy(self, capsys):
        resp = MagicMock(status_code=200)
        resp.json.return_value = {"status": "healthy", "checks": {}}
        with patch("docms.cli.httpx.get", return_value=resp) as get:
            assert cli_mod.cmd_health(_ns(url="http://svc:8080/", timeout=2.0)) == 0
        get.assert_called_once_with("http://svc:8080/health", timeout=2.0)
        assert '"status": "healthy"' in capsys.readouterr().out

    def test_unhealthy(self):
        resp = MagicMock(status_code=503)
        resp.json.return_value = {"status": "unhealthy", "checks": {}}
        with patch("docms.cli.httpx.get", return_value=resp):
            assert cli_mod.cmd_health(_ns(url="http://svc:8080", timeout=2.0)) == 1

    def test_unreachable(self, capsys):
        with patch("docms.cli.httpx.get", side_effect=httpx.ConnectError("refused")):
            assert cli_mod.cmd_health(_ns(url="http://svc:8080", timeout=2.0)) == 1
        assert "[ERROR] Could not reach" in capsys.readouterr().out

    def test_non_json_body(self, capsys):
        resp = MagicMock(status_code=502)
        resp.json.side_effect = ValueError("not json")
        with patch("docms.cli.httpx.get", return_value=resp):
            assert cli_mod.cmd_health(_ns(url="http://svc:8080", timeout=2.0)) == 1
        assert "non-JSON" in capsys.readouterr().out


class TestCmdCleanupLogs:
    def test_applies_retention(self, project_root, capsys):
        exec_dir = project_root / "logs" / "tasks" / "execution"
        exec_dir.mkdir(parents=True)
        old = exec_dir / f"{(date.today() - timedelta(days=10)).isoformat()}.jsonl"
        expired = exec_dir / f"{(date.today() - timedelta(days=31)).isoformat()}.jsonl"
        old.write_text("{}\n")
        expired.write_text("{}\n")

        assert cli_mod.cmd_cleanup_logs(_ns(config=str(project_root / "docms.yaml"))) == 0

        assert "Deleted 1 file(s), compressed 1 file(s)" in capsys.readouterr().out
        assert not expired.exists()
        with gzip.open(str(old) + ".gz", "rt") as f:
            assert f.read() == "{}\n"
