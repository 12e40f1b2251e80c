"""Domain errors raised by services; routers translate them to HTTP."""

from __future__ import annotations

from fastapi import HTTPException, status


class PolicyError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request rejected"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFound(PolicyError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class Forbidden(PolicyError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied"


class RecordLocked(PolicyError):
    # Kept at 400 so existing clients that branch on 400 keep working.
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Signed records cannot be changed"


class AlreadySigned(PolicyError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Record is already signed"


class NotSigned(PolicyError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Only signed records can be voided"


class AlreadyVoided(PolicyError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Record is already voided"


class ValidationFailed(PolicyError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input"


class Conflict(PolicyError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class PayloadTooLarge(PolicyError):
    status_code = 413
    default_detail = "Upload exceeds maximum file size"


def as_http(exc: PolicyError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)
