# shared/helpers/json_response_helper.py
from fastapi import HTTPException
from fastapi.responses import JSONResponse
from typing import Any, Optional

from shared.core.exceptions import AppError
from shared.core.schemas import JsonOutResult
from shared.utils.app_status_code import AppStatusCode


def failure_envelope(message: str, status_code: str = AppStatusCode.OPERATION_FAILED, data: Optional[Any] = None) -> dict:
    return JsonOutResult(
        data=data,
        status="Failure",
        status_code=status_code,
        message=message
    ).model_dump(mode="json")


def error_response(message: str, status_code: str = AppStatusCode.OPERATION_FAILED, http_status: int = 400):
    raise HTTPException(
        status_code=http_status,
        detail=failure_envelope(message, status_code)
    )


def app_error_response(exc: AppError) -> JSONResponse:
    """Render a domain error in the envelope, with its kind and details under ``data``.

    Retryable errors carry a ``Retry-After`` hint.
    """
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        content=failure_envelope(exc.message, exc.status_code, exc.to_dict()),
        status_code=exc.http_status,
        headers=headers,
    )
