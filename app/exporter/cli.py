from __future__ import annotations

"""Command-line entry point for running and controlling exports."""

import argparse
import json
from pathlib import Path
from typing import Sequence

from . import config
from .config_validation import validate_export_settings
from .controller import ExportController, ExportSettings, ExportState
from .replay import ReplayConfig, run_replay
from .reporter import build_default_reporter
from .session import SessionStore
from .utils import log_line, setup_run_logger


def _add_settings_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--year", required=True, help="Order year to export.")
    parser.add_argument(
        "--mode",
        default=config.EXPORT_MODE_BY_ORDER,
        help="Row grain: by-order (one row per order) or by-product.",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Return an argument parser for the exporter CLI."""

    parser = argparse.ArgumentParser(description="Export order history to CSV.")
    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Run an export in a browser profile.")
    _add_settings_arguments(export)
    export.add_argument(
        "--fetch-invoice",
        action="store_true",
        help="Fetch invoice popover links for every order (slower).",
    )
    display = export.add_mutually_exclusive_group()
    display.add_argument("--headful", action="store_true", help="Show the browser window.")
    display.add_argument("--headless", action="store_true", help="Hide the browser window.")
    export.add_argument("--user-data-dir", type=Path, help="Persistent browser profile directory.")
    export.add_argument("--xlsx", action="store_true", help="Also write an .xlsx copy.")

    sub.add_parser("status", help="Show the persisted export session.")
    sub.add_parser("cancel", help="Cancel the persisted export session.")

    replay = sub.add_parser("replay", help="Run an export over saved page_<N>.html files.")
    _add_settings_arguments(replay)
    replay.add_argument("--pages-dir", type=Path, required=True)
    replay.add_argument("--output-dir", type=Path)
    replay.add_argument("--fetch-invoice", action="store_true", help="Fetch invoice popovers live.")
    replay.add_argument("--cookie", default="", help="Cookie header for invoice popover requests.")

    return parser


def _print_json(payload: object) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _cmd_export(args: argparse.Namespace) -> int:
    # Imported lazily so status/cancel work without a Playwright install.
    from .browser import build_controller, run_browser_export

    year, export_mode = validate_export_settings(args.year, args.mode, entrypoint="cli")
    setup_run_logger()

    headless = None
    if args.headful:
        headless = False
    elif args.headless:
        headless = True

    controller = build_controller(reporter=build_default_reporter(), write_xlsx=args.xlsx)
    outcome = run_browser_export(
        ExportSettings(year=year, export_mode=export_mode, fetch_invoice=args.fetch_invoice),
        controller=controller,
        headless=headless,
        user_data_dir=args.user_data_dir,
    )
    _print_json(outcome.to_dict())
    return 0 if outcome.state == ExportState.COMPLETED else 1


def _cmd_status(_args: argparse.Namespace) -> int:
    _print_json(ExportController(SessionStore()).get_status())
    return 0


def _cmd_cancel(_args: argparse.Namespace) -> int:
    outcome = ExportController(SessionStore()).cancel_export()
    _print_json(outcome.to_dict())
    return 0


def _cmd_replay(args: argparse.Namespace) -> int:
    summary = run_replay(
        ReplayConfig(
            pages_dir=args.pages_dir,
            year=args.year,
            export_mode=args.mode,
            output_root=args.output_dir,
            fetch_invoice=args.fetch_invoice,
            cookie=args.cookie,
        )
    )
    _print_json(summary)
    return 0 if summary.get("state") == ExportState.COMPLETED.value else 1


COMMANDS = {
    "export": _cmd_export,
    "status": _cmd_status,
    "cancel": _cmd_cancel,
    "replay": _cmd_replay,
}


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the exporter CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        return COMMANDS[args.command](args)
    except ValueError as exc:
        log_line(f"[CLI] {exc}")
        parser.error(str(exc))
    return 2  # pragma: no cover - parser.error exits


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
