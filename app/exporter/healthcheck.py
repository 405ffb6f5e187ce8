from __future__ import annotations

"""Readiness checks for the exporter: configuration, storage, persisted session."""

import shutil
from dataclasses import dataclass
from typing import Any, Callable, Dict

from . import config
from .config_validation import validate_runtime_config
from .logging_utils import _export_event
from .session import SessionStore
from .utils import ensure_dirs, log_line

CheckResult = Dict[str, Any]


@dataclass
class HealthResult:
    ok: bool
    checks: dict[str, CheckResult]


def _check_config(entrypoint: str) -> CheckResult:
    try:
        validate_runtime_config(entrypoint, mode=None)
    except ValueError as exc:
        return {"ok": False, "error": str(exc)}
    return {"ok": True}


def _check_storage(_entrypoint: str) -> CheckResult:
    try:
        ensure_dirs()
        free_mb = shutil.disk_usage(config.DATA_DIR).free // (1024 * 1024)
    except OSError as exc:
        return {"ok": False, "error": str(exc)}
    return {
        "ok": free_mb >= config.MIN_FREE_MB,
        "free_mb": free_mb,
        "min_free_mb": config.MIN_FREE_MB,
        "exports_dir": str(config.EXPORTS_DIR),
    }


def _check_session(_entrypoint: str) -> CheckResult:
    # An export in progress is reported, never treated as unhealthy.
    session = SessionStore().load()
    if session is None:
        return {"ok": True, "active": False, "collected": 0}
    return {
        "ok": True,
        "active": True,
        "year": session.year,
        "export_mode": session.export_mode,
        "collected": session.collected_count,
    }


CHECKS: Dict[str, Callable[[str], CheckResult]] = {
    "config": _check_config,
    "filesystem": _check_storage,
    "session": _check_session,
}


def run_health_checks(entrypoint: str = "cli") -> HealthResult:
    checks = {name: check(entrypoint or "cli") for name, check in CHECKS.items()}
    ok = all(result.get("ok", False) for result in checks.values())
    _export_event("state" if ok else "error", phase="health", ok=ok, checks=checks)
    return HealthResult(ok=ok, checks=checks)


if __name__ == "__main__":  # pragma: no cover
    result = run_health_checks(entrypoint="cli")
    for name, info in result.checks.items():
        log_line(f"[HEALTH] {name}: {'OK' if info.get('ok') else 'FAIL'} {info}")
    raise SystemExit(0 if result.ok else 1)
