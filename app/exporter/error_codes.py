from __future__ import annotations

"""Error code taxonomy for export failures.

Codes are included in structured logs and in the ``error`` notifications sent
to listeners, so they should stay stable.
"""


class ErrorCode:
    NOT_AN_ORDER = "not_an_order"
    INVOICE_FETCH = "invoice_fetch_failed"
    EMPTY_RESULT = "empty_result"
    TRANSPORT = "transport_error"
    ALREADY_RUNNING = "already_running"
    INVALID_SETTINGS = "invalid_settings"
    HTTP_4XX = "http_4xx"
    HTTP_5XX = "http_5xx"
    INTERNAL = "internal_error"


class ExportError(Exception):
    """Terminal failure of an export; the persisted session must be cleared."""

    def __init__(self, error_code: str, message: str) -> None:
        super().__init__(message)
        self.error_code = error_code


def classify_http_status(status: int | None) -> str:
    if status is None:
        return ErrorCode.TRANSPORT
    if 400 <= status < 500:
        return ErrorCode.HTTP_4XX
    if status >= 500:
        return ErrorCode.HTTP_5XX
    return ErrorCode.INTERNAL


__all__ = ["ErrorCode", "ExportError", "classify_http_status"]
