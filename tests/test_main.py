"""Tests for the command-line entry point."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from serverstat import main as cli
from serverstat.health.engine import StatusRecord
from serverstat.health.recorder import CycleReport, PersistOutcome


class TestConfigFailFast:
    @pytest.mark.parametrize("command", ["probe", "once", "serve"])
    def test_missing_pass_exits_before_network(self, write_settings, command: str) -> None:
        path = write_settings(password=None)
        with patch.object(cli.asyncio, "run") as run, patch.object(cli.uvicorn, "run") as serve:
            with pytest.raises(SystemExit) as exc:
                cli.main(["--settings", str(path), command])
        assert exc.value.code == 2
        run.assert_not_called()
        serve.assert_not_called()

    def test_no_command_prints_help(self) -> None:
        with pytest.raises(SystemExit) as exc:
            cli.main([])
        assert exc.value.code == 1


class TestCommands:
    def test_probe_starts_scheduler(self, write_settings) -> None:
        path = write_settings()
        with patch.object(cli.asyncio, "run") as run, patch.object(cli, "ProbeScheduler") as sched_cls:
            cli.main(["--settings", str(path), "probe"])
        run.assert_called_once()
        args, kwargs = sched_cls.call_args
        assert args[0] == str(path)
        assert kwargs["interval_seconds"] == cli.app_settings.cycle_interval_minutes * 60
        run.call_args.args[0].close()  # unawaited coroutine

    def test_once_prints_report(self, write_settings, capsys) -> None:
        from datetime import datetime, timezone

        record = StatusRecord(url="https://example.com", available=True, observed_at=datetime.now(timezone.utc))
        report = CycleReport(probed=1, outcomes=[PersistOutcome(record=record, row_id=7)])

        def fake_run(coro):
            coro.close()
            return report

        with patch.object(cli.asyncio, "run", side_effect=fake_run):
            cli.main(["--settings", str(write_settings()), "once"])
        out = capsys.readouterr().out
        assert "https://example.com" in out
        assert "1 probed" in out

    def test_once_skipped_cycle_exits_nonzero(self, write_settings) -> None:
        def fake_run(coro):
            coro.close()
            return None

        with patch.object(cli.asyncio, "run", side_effect=fake_run):
            with pytest.raises(SystemExit) as exc:
                cli.main(["--settings", str(write_settings()), "once"])
        assert exc.value.code == 1

    def test_serve_launches_uvicorn(self, write_settings, monkeypatch) -> None:
        path = write_settings()
        monkeypatch.setattr(cli.app_settings, "settings_file", cli.app_settings.settings_file)
        with patch.object(cli.uvicorn, "run") as serve:
            cli.main(["--settings", str(path), "serve"])
        assert serve.call_args.args[0] == "serverstat.api.server:app"
        assert cli.app_settings.settings_file == str(path)
