from __future__ import annotations

import pytest

from app.exporter.error_codes import ErrorCode, ExportError, classify_http_status


def test_export_error_keeps_message_and_code() -> None:
    exc = ExportError(ErrorCode.EMPTY_RESULT, "No orders found for 2024")

    assert str(exc) == "No orders found for 2024"
    assert exc.error_code == ErrorCode.EMPTY_RESULT
    assert exc.args == ("No orders found for 2024",)


@pytest.mark.parametrize(
    "status, expected",
    [
        (None, ErrorCode.TRANSPORT),
        (403, ErrorCode.HTTP_4XX),
        (404, ErrorCode.HTTP_4XX),
        (500, ErrorCode.HTTP_5XX),
        (503, ErrorCode.HTTP_5XX),
        (302, ErrorCode.INTERNAL),
    ],
)
def test_classify_http_status(status, expected) -> None:
    assert classify_http_status(status) == expected
