from __future__ import annotations

from typing import Any, Mapping

from .utils import log_line

EVENT_PREFIX = "EXPORT"


def _format_fields(fields: Mapping[str, Any]) -> str:
    return ", ".join(f"{key}={value!r}" for key, value in sorted(fields.items()))


def _export_event(label: str = "", *, phase: str | None = None, **fields: Any) -> None:
    """Log one ``[EXPORT][LABEL] key=value, ...`` line.

    Without a label, ``phase`` becomes the label; with both, ``phase`` is kept
    as a field.
    """

    try:
        if label and phase:
            fields.setdefault("phase", phase)
        tag = (label or phase or "").upper()
        log_line(f"[{EVENT_PREFIX}][{tag}] {_format_fields(fields)}")
    except Exception:  # noqa: BLE001
        return


__all__ = ["_export_event"]
