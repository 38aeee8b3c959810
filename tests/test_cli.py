from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest

from callstats import cli
from callstats.errors import RetrievalError

ENV = {
    "CALLSTATS_WEBHOOK_URL": "https://portal.example/rest/1/token",
    "CALLSTATS_DESTINATIONS": "199421",
    "CALLSTATS_RUN_TIMES": "09:00,18:00",
    "CALLSTATS_WORK_DAYS": "*",
}


@pytest.fixture
def configured_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key, value in ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("CALLSTATS_ACTIVITY_LOG_PATH", str(tmp_path / "activity.log"))


def test_run_command_supports_date_dry_run_and_summary(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    configured_env: None,
) -> None:
    called = {}

    def fake_run(config, *, report_date, dry_run):
        called["report_date"] = report_date
        called["dry_run"] = dry_run
        called["destinations"] = config.destinations
        return {
            "report_date": report_date.isoformat(),
            "policy": config.policy,
            "raw_calls": 4,
            "attributed_calls": 3,
            "report": "Call statistics for 2026-10-16",
            "delivered": [],
            "failed": [],
        }

    monkeypatch.setattr(cli, "run_call_statistics", fake_run)

    summary = tmp_path / "summary.json"
    code = cli.main(["run", "--date", "2026-10-16", "--dry-run", "--summary-out", str(summary)])

    assert code == 0
    assert called == {"report_date": date(2026, 10, 16), "dry_run": True, "destinations": ("199421",)}
    assert "Call statistics for 2026-10-16" in capsys.readouterr().out
    payload = json.loads(summary.read_text())
    assert payload["attributed_calls"] == 3
    assert payload["dry_run"] is True


def test_run_command_exit_code_reflects_failed_delivery(
    monkeypatch: pytest.MonkeyPatch,
    configured_env: None,
) -> None:
    monkeypatch.setattr(
        cli,
        "run_call_statistics",
        lambda config, **_: {"report": "", "delivered": [], "failed": ["199421"]},
    )

    assert cli.main(["run"]) == 1


def test_next_run_lists_upcoming_times(capsys: pytest.CaptureFixture[str], configured_env: None) -> None:
    code = cli.main(["next-run", "--count", "3"])

    lines = capsys.readouterr().out.splitlines()
    assert code == 0
    assert len(lines) == 3
    assert {line[11:16] for line in lines} <= {"09:00", "18:00"}


def test_configuration_error_exits_with_status_two(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CALLSTATS_WEBHOOK_URL", raising=False)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["next-run"])
    assert excinfo.value.code == 2


def test_run_command_reports_retrieval_failure_with_status_one(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    configured_env: None,
) -> None:
    def failing_run(config, **_):
        raise RetrievalError("Error fetching calls: Too many requests", method="voximplant.statistic.get")

    monkeypatch.setattr(cli, "run_call_statistics", failing_run)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["run"])
    assert excinfo.value.code == 1
    assert "Too many requests" in capsys.readouterr().err
