from pathlib import Path

import pytest

from app.exporter import logging_utils, utils
from tests.test_session import _configure_temp_paths


def test_export_event_label_and_phase(monkeypatch):
    events: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg: events.append(msg))

    logging_utils._export_event("page", phase="export", page_index=2, added=10)

    assert events
    line = events[-1]
    assert line.startswith("[EXPORT][PAGE]")
    assert "phase='export'" in line
    assert "page_index=2" in line
    assert "added=10" in line


def test_export_event_never_raises(monkeypatch):
    def boom(_msg: str) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(logging_utils, "log_line", boom)

    logging_utils._export_event("error", error="x")


def test_setup_run_logger_writes_to_new_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)

    log_path = utils.setup_run_logger()
    utils.log_line("[TEST] hello")
    for handler in utils.LOGGER.handlers:
        handler.flush()

    assert log_path.parent == tmp_path / "data" / "logs"
    assert log_path.name.startswith("export_")
    assert utils.get_current_log_path() == log_path
    assert "[TEST] hello" in log_path.read_text(encoding="utf-8")


def test_clean_text_and_full_url() -> None:
    assert utils.clean_text("  a \n\t b  ") == "a b"
    assert utils.clean_text(None) == ""
    assert utils.to_full_url("/dp/B1") == "https://www.amazon.co.jp/dp/B1"
    assert utils.to_full_url("dp/B1") == "https://www.amazon.co.jp/dp/B1"
    assert utils.to_full_url("https://other/x") == "https://other/x"
    assert utils.to_full_url("") == ""
