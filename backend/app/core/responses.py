"""Response envelope helpers.

Successful responses are ``{"success": true, "data": ...}`` (optionally with a
``message``); failures are ``{"success": false, "message": ...}``.
"""

from typing import Any, Optional

from fastapi.responses import JSONResponse


def success_response(data: Any = None, message: Optional[str] = None) -> dict:
    body: dict = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def error_response(status_code: int, message: str, errors: Optional[list] = None) -> JSONResponse:
    body: dict = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body)
