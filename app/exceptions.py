import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from services.exceptions import FleetDomainError

logger = logging.getLogger(__name__)


async def fleet_exception_handler(request: Request, exc: FleetDomainError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code,
            "message": str(exc),
            "field": getattr(exc, "field", None),
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    # Subclasses resolve to the base handler through the exception MRO
    app.add_exception_handler(FleetDomainError, fleet_exception_handler)
