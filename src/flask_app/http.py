from __future__ import annotations

from typing import Any, Dict, Optional

from flask import jsonify


def _envelope(status: str, extra: Dict[str, Any], **fields: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"status": status}
    payload.update({k: v for k, v in fields.items() if v is not None})
    payload.update(extra)
    return payload


def ok(*, data: Any = None, message: Optional[str] = None, status_code: int = 200, **extra: Any):
    return jsonify(_envelope("success", extra, message=message, data=data)), status_code


def error(*, message: str, status_code: int = 500, code: Optional[str] = None, **extra: Any):
    detail: Dict[str, Any] = {"message": message}
    if code is not None:
        detail["code"] = code
    return jsonify(_envelope("error", extra, message=message, error=detail)), status_code
