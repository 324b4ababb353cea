import logging

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from .exceptions import ConsistencyError, FilterError, InvalidCourtName
from .response import error as resp_error

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content=resp_error(code=str(exc.status_code), message=str(exc.detail)))

    @app.exception_handler(InvalidCourtName)
    async def invalid_court_handler(request: Request, exc: InvalidCourtName):
        return JSONResponse(status_code=400, content=resp_error(code="invalid_court", message=str(exc)))

    @app.exception_handler(FilterError)
    async def filter_error_handler(request: Request, exc: FilterError):
        return JSONResponse(status_code=400, content=resp_error(code="invalid_filter", message=str(exc)))

    @app.exception_handler(ConsistencyError)
    async def consistency_error_handler(request: Request, exc: ConsistencyError):
        logger.error("Request failed on commit: %s", exc)
        return JSONResponse(status_code=503, content=resp_error(code="storage_unavailable", message="Storage unavailable, try again later"))
