"""Response envelopes: JSON with data/error fields, and CSV downloads."""

from __future__ import annotations

import dataclasses
import json
from datetime import datetime
from enum import Enum
from typing import Any

from starlette.responses import Response

JSON_TYPE = "application/json"


def _default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        text = obj.isoformat()
        return text[:-6] + "Z" if text.endswith("+00:00") else text
    raise TypeError(f"cannot encode {type(obj).__name__} as JSON")


def _encode(payload: Any) -> bytes:
    return json.dumps(
        payload, default=_default, ensure_ascii=False, separators=(",", ":")
    ).encode("utf-8")


def error_response(status: int, error: BaseException | str | None, data: Any = None) -> Response:
    """An envelope carrying data and, when given, the error message."""
    message = None if error is None else str(error)
    return Response(_encode({"data": data, "error": message}), status, media_type=JSON_TYPE)


def error_no_body(status: int, error: BaseException | str | None) -> Response:
    return error_response(status, error, None)


def ok_empty_json() -> Response:
    return Response(b"{}", 200, media_type=JSON_TYPE)


def ok_json(body: Any) -> Response:
    return json_body(200, body)


def json_body(status: int, body: Any) -> Response:
    return Response(_encode({"data": body, "error": None}), status, media_type=JSON_TYPE)


def _needs_quotes(field: str) -> bool:
    if field == "":
        return False
    if field == "\\.":
        return True
    if any(ch in field for ch in ',"\r\n'):
        return True
    return field[0].isspace()


def _format_field(field: str) -> str:
    if not _needs_quotes(field):
        return field
    return '"' + field.replace('"', '""') + '"'


def rows_to_csv_bytes(rows: list[list[str]]) -> bytes:
    """Encode rows as comma-separated lines ending in a newline."""
    return "".join(
        ",".join(_format_field(field) for field in row) + "\n" for row in rows
    ).encode("utf-8")


def csv_response(filename: str, rows: list[list[str]]) -> Response:
    """A CSV attachment named after ``filename``."""
    return Response(
        rows_to_csv_bytes(rows),
        200,
        headers={
            "Content-Type": "text/csv",
            "Content-Disposition": f"attachment; filename={filename}.csv",
        },
    )