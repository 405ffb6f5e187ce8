from __future__ import annotations

import threading
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request, send_file

from app.exporter import config
from app.exporter.browser import build_controller, run_browser_export
from app.exporter.config_validation import validate_export_settings, validate_runtime_config
from app.exporter.controller import ExportController, ExportSettings
from app.exporter.error_codes import ErrorCode
from app.exporter.healthcheck import run_health_checks
from app.exporter.logging_utils import _export_event
from app.exporter.reporter import StatusReporter, build_default_reporter
from app.exporter.session import SessionStore
from app.exporter.utils import ensure_dirs, get_current_log_path, log_line, setup_run_logger

app = Flask(__name__)

# Initialise storage paths on import so WSGI entrypoints have them ready.
ensure_dirs()

REPORTER: StatusReporter = build_default_reporter()

_RUN_LOCK = threading.Lock()
_ACTIVE: Dict[str, Any] = {"thread": None, "controller": None}


def _is_export_running() -> bool:
    thread = _ACTIVE.get("thread")
    return thread is not None and thread.is_alive()


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def _request_payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    return request.form.to_dict()


def _status_controller() -> ExportController:
    controller: Optional[ExportController] = _ACTIVE.get("controller")
    if controller is not None and _is_export_running():
        return controller
    return ExportController(SessionStore(), reporter=REPORTER)


@app.post("/api/export/start")
def api_export_start() -> Response:
    """Validate settings and run a browser export on a background thread."""

    payload = _request_payload()
    try:
        year, export_mode = validate_export_settings(
            payload.get("year"),
            payload.get("exportMode") or payload.get("export_mode") or config.EXPORT_MODE_BY_ORDER,
            entrypoint="ui",
        )
        validate_runtime_config("ui", mode=export_mode)
    except ValueError as exc:
        return jsonify({"ok": False, "error": ErrorCode.INVALID_SETTINGS, "details": str(exc)}), 400

    settings = ExportSettings(
        year=year,
        export_mode=export_mode,
        fetch_invoice=_parse_bool(payload.get("fetchInvoice") or payload.get("fetch_invoice")),
    )
    write_xlsx = _parse_bool(payload.get("xlsx"))

    with _RUN_LOCK:
        if _is_export_running():
            _export_event("error", phase="start", error_code=ErrorCode.ALREADY_RUNNING, trigger="ui")
            REPORTER.error("An export is already running")
            return jsonify({"ok": False, "error": ErrorCode.ALREADY_RUNNING}), 409

        controller = build_controller(reporter=REPORTER, write_xlsx=write_xlsx)

        def _run() -> None:
            with app.app_context():
                try:
                    log_file = setup_run_logger()
                    app.config["CURRENT_LOG_FILE"] = str(log_file)
                    outcome = run_browser_export(settings, controller=controller, entrypoint="ui")
                    app.config["LAST_OUTCOME"] = outcome.to_dict()
                except Exception as exc:  # noqa: BLE001
                    log_line(f"Export thread failed: {exc}")
                    outcome = controller.report_transport_failure(f"Browser export failed: {exc}")
                    app.config["LAST_OUTCOME"] = outcome.to_dict()

        thread = threading.Thread(target=_run, daemon=True)
        _ACTIVE["controller"] = controller
        _ACTIVE["thread"] = thread
        thread.start()

    log_line(f"[UI] Export started: year={year} mode={export_mode}")
    return (
        jsonify(
            {
                "ok": True,
                "year": year,
                "exportMode": export_mode,
                "fetchInvoice": settings.fetch_invoice,
            }
        ),
        202,
    )


@app.post("/api/export/cancel")
def api_export_cancel() -> Response:
    outcome = _status_controller().cancel_export()
    return jsonify({"ok": True, **outcome.to_dict()})


@app.get("/api/export/status")
def api_export_status() -> Response:
    """Report the export owned by this server; a record left without a live run is stale."""

    status = _status_controller().get_status()
    thread_alive = _is_export_running()
    has_record = bool(status["isRunning"])
    return jsonify(
        {
            **status,
            "isRunning": has_record and thread_alive,
            "staleSession": has_record and not thread_alive,
            "threadAlive": thread_alive,
            "lastOutcome": app.config.get("LAST_OUTCOME"),
            "recent": REPORTER.recent(),
        }
    )


@app.get("/exports/<path:filename>")
def download_export(filename: str) -> Response:
    """Serve a produced export file from the exports directory."""

    target = (config.EXPORTS_DIR / filename).resolve()
    root = config.EXPORTS_DIR.resolve()
    if not str(target).startswith(str(root)):
        return Response("Invalid path", status=400)
    if not target.exists() or not target.is_file():
        return Response("File not found", status=404)
    return send_file(target, as_attachment=True, download_name=target.name)


@app.get("/logs/current")
def download_current_log() -> Response:
    path = get_current_log_path()
    if not path.exists():
        return Response("File not found", status=404)
    return send_file(path, as_attachment=True, download_name=path.name)


@app.get("/api/health")
def api_health() -> Response:
    result = run_health_checks(entrypoint="ui")
    return jsonify({"ok": result.ok, "checks": result.checks}), (200 if result.ok else 503)


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=8080)
