from typing import Any, Dict, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(
    *,
    data: Optional[Any] = None,
    message: str = "Operation successful",
    status_code: int = status.HTTP_200_OK,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    Envelope shared by every endpoint: status_code, status, message, data.
    Pydantic payloads are encoded by alias so reports keep their camelCase keys.
    """
    body = jsonable_encoder(data, by_alias=True) if data is not None else {}

    return JSONResponse(
        status_code=status_code,
        content={
            "status_code": status_code,
            "status": "success" if status_code < 400 else "error",
            "message": message,
            "data": body,
        },
        headers=headers,
    )


def error_response(
    message: str,
    status_code: int,
    category: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    **details: Any,
) -> JSONResponse:
    """Error envelope; category lets clients branch on dns, timeout, not_ready and friends."""
    data = dict(details)
    if category is not None:
        data["category"] = category
    return api_response(data=data, message=message, status_code=status_code, headers=headers)
