from typing import Any, Dict, Optional

from shared.utils.app_status_code import AppStatusCode


class AppError(Exception):
    """Base for errors that travel to the caller with a stable kind and message."""

    kind = "operation_failed"
    status_code = AppStatusCode.OPERATION_FAILED
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "retryable": self.retryable, **self.details}
