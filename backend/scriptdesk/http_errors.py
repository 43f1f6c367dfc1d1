from __future__ import annotations

from fastapi import HTTPException, status

from .services.intake import IntakeError
from .services.payments import PaymentError
from .services.pricing import InvalidDiscountCode, UnknownTier
from .services.storage import FileTooLarge, InvalidFile, StorageError
from .services.workflow import (
    MissingRubricFields,
    NotAssigned,
    NotFound,
    ReviewConflict,
    RubricNotAvailable,
    WorkflowError,
)

# most specific first
_STATUS_MAP: tuple[tuple[type[Exception], int], ...] = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (NotAssigned, status.HTTP_403_FORBIDDEN),
    (ReviewConflict, status.HTTP_409_CONFLICT),
    (MissingRubricFields, status.HTTP_400_BAD_REQUEST),
    (RubricNotAvailable, status.HTTP_400_BAD_REQUEST),
    (WorkflowError, status.HTTP_400_BAD_REQUEST),
    (InvalidDiscountCode, status.HTTP_400_BAD_REQUEST),
    (UnknownTier, status.HTTP_400_BAD_REQUEST),
    (IntakeError, status.HTTP_400_BAD_REQUEST),
    (FileTooLarge, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE),
    (InvalidFile, status.HTTP_400_BAD_REQUEST),
    (StorageError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (PaymentError, status.HTTP_502_BAD_GATEWAY),
)

DOMAIN_ERRORS = tuple(cls for cls, _ in _STATUS_MAP)


def to_http(exc: Exception) -> HTTPException:
    """Translate a service-layer error into the matching HTTPException."""
    for cls, code in _STATUS_MAP:
        if isinstance(exc, cls):
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal Server Error")
