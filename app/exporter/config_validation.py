from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from . import config
from .logging_utils import _export_event
from .utils import log_line

Entrypoint = Literal["ui", "cli", "replay", "tests"]


def _raise_config_error(
    message: str, *, entrypoint: Entrypoint, error: str, mode: str | None
) -> None:
    _export_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
        mode=mode,
    )
    mode_fragment = f", mode={mode}" if mode else ""
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint}{mode_fragment})")
    raise ValueError(message)


def validate_runtime_config(entrypoint: Entrypoint, *, mode: str | None = None) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    Negative delays are clamped to zero and logged.
    """

    if config.PAGE_SIZE < 1:
        _raise_config_error(
            "PAGE_SIZE must be at least 1.",
            entrypoint=entrypoint,
            error="page_size_invalid",
            mode=mode,
        )

    if config.MIN_FREE_MB < 0:
        _raise_config_error(
            "MIN_FREE_MB must be zero or greater.",
            entrypoint=entrypoint,
            error="min_free_mb_invalid",
            mode=mode,
        )

    if config.MAX_PAGE_LOADS < 1:
        _raise_config_error(
            "MAX_PAGE_LOADS must be at least 1.",
            entrypoint=entrypoint,
            error="max_page_loads_invalid",
            mode=mode,
        )

    for field_name in ("PAGE_DELAY_SECONDS", "INVOICE_FETCH_DELAY_SECONDS"):
        value = getattr(config, field_name)
        if value < 0:
            _export_event(
                "state",
                phase="config",
                context="runtime_validation",
                kind="config_adjustment",
                field=field_name,
                value=value,
                adjusted=0.0,
                entrypoint=entrypoint,
                mode=mode,
            )
            log_line(f"[CONFIG] {field_name} < 0; clamping to 0.")
            setattr(config, field_name, 0.0)

    timeout_fields = [
        ("PLAYWRIGHT_NAV_TIMEOUT_SECONDS", config.PLAYWRIGHT_NAV_TIMEOUT_SECONDS),
        ("PLAYWRIGHT_REQUEST_TIMEOUT_SECONDS", config.PLAYWRIGHT_REQUEST_TIMEOUT_SECONDS),
    ]

    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
                mode=mode,
            )


def validate_export_settings(
    year: Any,
    export_mode: Any,
    *,
    entrypoint: Entrypoint = "cli",
    now: datetime | None = None,
) -> tuple[int, str]:
    """Return ``(year, export_mode)`` normalised, or raise ``ValueError``."""

    mode = config.normalize_export_mode(str(export_mode or ""))
    if mode not in config.EXPORT_MODES:
        _raise_config_error(
            f"Unknown export mode {export_mode!r}; expected one of {', '.join(config.EXPORT_MODES)}.",
            entrypoint=entrypoint,
            error="invalid_export_mode",
            mode=mode or None,
        )

    try:
        year_value = int(str(year).strip())
    except (TypeError, ValueError):
        _raise_config_error(
            f"Year must be an integer, got {year!r}.",
            entrypoint=entrypoint,
            error="invalid_year",
            mode=mode,
        )

    current_year = (now or datetime.now()).year
    if not config.MIN_EXPORT_YEAR <= year_value <= current_year:
        _raise_config_error(
            f"Year must be between {config.MIN_EXPORT_YEAR} and {current_year}.",
            entrypoint=entrypoint,
            error="year_out_of_range",
            mode=mode,
        )

    return year_value, mode


__all__ = ["validate_runtime_config", "validate_export_settings", "Entrypoint"]
