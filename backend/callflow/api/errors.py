"""Translation of versioning errors into HTTP errors."""

import logging

from fastapi import HTTPException

from callflow.errors import (
    ConflictError,
    FlowValidationError,
    InvalidStateTransition,
    MissingOwnership,
    NotFoundError,
    VersioningError,
)

logger = logging.getLogger(__name__)


def http_error(e: VersioningError) -> HTTPException:
    """Map a versioning error to the HTTPException reported to the client."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, (InvalidStateTransition, ConflictError)):
        return HTTPException(status_code=409, detail=e.message)
    if isinstance(e, FlowValidationError):
        return HTTPException(
            status_code=422,
            detail={"message": e.message, "validation": e.result.model_dump()},
        )
    if isinstance(e, MissingOwnership):
        return HTTPException(status_code=422, detail=e.message)

    logger.error(f"Unrecoverable versioning error: {e.message}")
    return HTTPException(status_code=500, detail=e.message)
