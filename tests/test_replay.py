from __future__ import annotations

from pathlib import Path

import pytest

from app.exporter import config
from app.exporter.replay import ReplayConfig, run_replay
from tests.test_controller import _pages
from tests.test_session import _configure_temp_paths


def _write_pages(pages_dir: Path, pages: dict[int, str]) -> Path:
    pages_dir.mkdir(parents=True, exist_ok=True)
    for index, html in pages.items():
        (pages_dir / f"page_{index}.html").write_text(html, encoding="utf-8")
    return pages_dir


def test_replay_runs_full_export(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    pages_dir = _write_pages(tmp_path / "pages", _pages())
    out_dir = tmp_path / "out"

    summary = run_replay(
        ReplayConfig(
            pages_dir=pages_dir,
            year=2024,
            export_mode=config.EXPORT_MODE_BY_PRODUCT,
            output_root=out_dir,
        )
    )

    assert summary["state"] == "completed"
    assert summary["orders"] == 25
    assert summary["pages_loaded"] == 3
    assert summary["output_path"] == str(out_dir / "order_history_by_product_2024.csv")
    assert Path(summary["output_path"]).exists()
    assert not (out_dir / "replay_session.json").exists()


def test_replay_missing_page_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    pages = _pages()
    del pages[1]
    pages_dir = _write_pages(tmp_path / "pages", pages)

    summary = run_replay(ReplayConfig(pages_dir=pages_dir, year=2024, output_root=tmp_path / "out"))

    assert summary["state"] == "failed"
    assert "startIndex=10" in summary["message"]
    assert summary["output_path"] is None


def test_replay_rejects_invalid_year(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)

    with pytest.raises(ValueError):
        run_replay(ReplayConfig(pages_dir=tmp_path, year=1999, output_root=tmp_path / "out"))


def test_replay_fetches_invoices_with_cookie(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    from app.exporter import replay
    from tests.test_extractor import POPOVER_HTML, _order_card_html, _page_html

    _configure_temp_paths(tmp_path, monkeypatch)
    cookies: list[str] = []

    def fake_fetcher_factory(*, cookie: str = ""):
        cookies.append(cookie)
        return lambda url: POPOVER_HTML

    monkeypatch.setattr(replay, "make_requests_fetcher", fake_fetcher_factory)
    card = _order_card_html("A-1", popover_url="/your-orders/invoice/popover?orderId=A-1")
    pages_dir = _write_pages(tmp_path / "pages", {0: _page_html(1, [card])})

    summary = run_replay(
        ReplayConfig(
            pages_dir=pages_dir,
            year=2024,
            output_root=tmp_path / "out",
            fetch_invoice=True,
            cookie="session-id=abc",
        )
    )

    assert cookies == ["session-id=abc"]
    assert summary["state"] == "completed"
    body = Path(summary["output_path"]).read_text(encoding="utf-8")
    assert "print.html?orderID=ORDER" in body
