from __future__ import annotations

import json
from pathlib import Path

import pytest

from app.exporter import cli
from app.exporter.session import ExportSession, SessionStore
from tests.test_controller import _pages
from tests.test_replay import _write_pages
from tests.test_session import _configure_temp_paths, _order


def test_status_reports_persisted_session(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    session = ExportSession(year=2024, export_mode="by-order", total_orders=25)
    session.merge_orders([_order("A-1"), _order("A-2")])
    SessionStore().save(session)

    assert cli.main(["status"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload == {"isRunning": True, "collectedCount": 2}


def test_cancel_clears_session(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    SessionStore().save(ExportSession(year=2024, export_mode="by-order"))

    assert cli.main(["cancel"]) == 0

    assert json.loads(capsys.readouterr().out)["state"] == "cancelled"
    assert SessionStore().load() is None


def test_replay_command(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    pages_dir = _write_pages(tmp_path / "pages", _pages(total=12))

    exit_code = cli.main(
        [
            "replay",
            "--pages-dir",
            str(pages_dir),
            "--year",
            "2024",
            "--mode",
            "by-order",
            "--output-dir",
            str(tmp_path / "out"),
        ]
    )

    assert exit_code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["orders"] == 12
    assert (tmp_path / "out" / "order_history_by_order_2024.csv").exists()


def test_export_command_drives_browser(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    from app.exporter import browser
    from app.exporter.controller import CycleOutcome, ExportState

    _configure_temp_paths(tmp_path, monkeypatch)
    calls: list[dict] = []

    def fake_run(settings, *, controller=None, headless=None, user_data_dir=None):
        calls.append(
            {
                "settings": settings,
                "headless": headless,
                "user_data_dir": user_data_dir,
                "write_xlsx": controller.write_xlsx,
            }
        )
        return CycleOutcome(state=ExportState.COMPLETED, order_count=3)

    monkeypatch.setattr(browser, "run_browser_export", fake_run)

    exit_code = cli.main(
        ["export", "--year", "2024", "--mode", "products", "--fetch-invoice", "--headful", "--xlsx"]
    )

    assert exit_code == 0
    [call] = calls
    assert call["settings"].year == 2024
    assert call["settings"].export_mode == "by-product"
    assert call["settings"].fetch_invoice is True
    assert call["headless"] is False
    assert call["write_xlsx"] is True


def test_invalid_year_exits_with_usage_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["replay", "--pages-dir", str(tmp_path), "--year", "1999"])

    assert excinfo.value.code == 2
