"""Domain errors raised by crud and service code.

Route handlers let these propagate; ``register_exception_handlers`` maps
them onto HTTP responses of the form ``{"detail": message}``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MarketplaceError):
    status_code = 400


class NotFoundError(MarketplaceError):
    status_code = 404

    def __init__(self, entity: str, entity_id=None):
        message = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(message)


class ForbiddenError(MarketplaceError):
    status_code = 403


class ConflictError(MarketplaceError):
    status_code = 409


class StorageError(MarketplaceError):
    status_code = 502


class InvalidTransition(ConflictError):
    def __init__(self, field: str, current: str, target: str):
        super().__init__(f"Cannot change {field} from '{current}' to '{target}'")
        self.field = field
        self.current = current
        self.target = target


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MarketplaceError)
    async def marketplace_error_handler(request: Request, exc: MarketplaceError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(StaleDataError)
    async def stale_data_handler(request: Request, exc: StaleDataError):
        logger.warning(f"Concurrent modification on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=409,
            content={"detail": "The record was modified by another request, reload and retry"},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
