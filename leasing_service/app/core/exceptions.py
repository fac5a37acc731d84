from shared.core.exceptions import AppError
from shared.utils.app_status_code import AppStatusCode


class LeaseValidationError(AppError):
    kind = "validation_error"
    status_code = AppStatusCode.REQUIRED_VALIDATION_ERROR
    http_status = 400


class NotFound(AppError):
    kind = "not_found"
    status_code = AppStatusCode.DATA_NOT_FOUND
    http_status = 404


class AccessDenied(AppError):
    kind = "access_denied"
    status_code = AppStatusCode.UNAUTHORIZED_ACTION
    http_status = 403


class OverlapConflict(AppError):
    kind = "overlap_conflict"
    status_code = AppStatusCode.DUPLICATE_ADD_ERROR
    http_status = 409

    def __init__(self, message: str, conflicting_lease=None):
        details = {}
        if conflicting_lease is not None:
            details["conflicting_lease"] = {
                "id": str(conflicting_lease.id),
                "reference": conflicting_lease.reference,
                "start_date": conflicting_lease.start_date.isoformat(),
                "end_date": conflicting_lease.end_date.isoformat(),
            }
        super().__init__(message, details)
        self.conflicting_lease_id = conflicting_lease.id if conflicting_lease is not None else None


class InvalidTransition(AppError):
    kind = "invalid_transition"
    status_code = AppStatusCode.INVALID_STATUS_TRANSITION
    http_status = 409


class Busy(AppError):
    """Lock contention or transaction timeout. Safe to retry with backoff."""

    kind = "busy"
    status_code = AppStatusCode.RESOURCE_BUSY
    http_status = 503
    retryable = True
