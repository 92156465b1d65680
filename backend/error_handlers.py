# backend/error_handlers.py

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.rejections import CampaignRejection

logger = logging.getLogger(__name__)


def _error(request: Request, status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "request_id": getattr(request.state, "request_id", None)},
    )


def _store_message(exc: SQLAlchemyError) -> str:
    return str(getattr(exc, "orig", None) or exc)


def register_error_handlers(app: FastAPI):
    @app.exception_handler(CampaignRejection)
    async def handle_rejection(request: Request, exc: CampaignRejection):
        logger.info(f"Rejected {request.method} {request.url.path}: {exc.message}")
        return _error(request, exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        response = _error(request, exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(IntegrityError)
    async def handle_integrity_error(request: Request, exc: IntegrityError):
        logger.warning(f"Constraint violation on {request.url.path}: {_store_message(exc)}")
        return _error(request, 409, _store_message(exc))

    @app.exception_handler(SQLAlchemyError)
    async def handle_store_error(request: Request, exc: SQLAlchemyError):
        logger.error(f"Database error on {request.url.path}", exc_info=exc)
        return _error(request, 500, _store_message(exc))

    @app.exception_handler(Exception)
    async def handle_exception(request: Request, exc: Exception):
        logger.error("Unhandled exception", exc_info=exc)
        return _error(request, 500, "Internal server error")
