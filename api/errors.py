# api/errors.py
import logging

from fastapi import HTTPException, status

from services.errors import (
    GraphBuildError,
    GraphPayloadError,
    SessionAccessError,
    SessionNotFoundError,
)

logger = logging.getLogger(__name__)


def to_http_exception(exc: Exception, operation: str) -> HTTPException:
    """Map a service exception to the response the client sees."""
    if isinstance(exc, GraphPayloadError):
        logger.warning(f"Validation error in {operation}: {exc}")
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, SessionNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    if isinstance(exc, SessionAccessError):
        logger.warning(f"Access denied in {operation}: {exc}")
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to access this session")
    if isinstance(exc, GraphBuildError):
        logger.warning(f"Graph build failed in {operation}: {exc}")
        return HTTPException(status_code=422, detail=str(exc))

    logger.error(f"Unexpected error in {operation}", exc_info=exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="An internal error occurred")
