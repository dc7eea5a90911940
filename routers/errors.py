# /routers/errors.py
"""Translate the tool error taxonomy into HTTP responses."""
import logging

from fastapi import HTTPException

from tools.errors import EnvironmentSetupError, InvalidEncodingError, PassportDataError

logger = logging.getLogger(__name__)


def to_http_exception(e: Exception) -> HTTPException:
    if isinstance(e, InvalidEncodingError):
        return HTTPException(status_code=400, detail=f"Invalid Base64/hex input: {e}")
    if isinstance(e, PassportDataError):
        return HTTPException(status_code=422, detail=f"{type(e).__name__}: {e}")
    if isinstance(e, EnvironmentSetupError):
        logger.error(f"Environment problem: {e}")
        return HTTPException(
            status_code=503,
            detail={"error": str(e.args[0]) if e.args else type(e).__name__, "remediation": e.remediation},
        )
    logger.exception("Unexpected error", exc_info=e)
    return HTTPException(status_code=500, detail=f"Internal server error: {type(e).__name__}")
