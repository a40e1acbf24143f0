"""
Exception handlers mapping the application error hierarchy to JSON responses.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

from trafficflow.exceptions import (
    AllBackendsFailedError,
    BackendQueryError,
    ConfigurationError,
    InvalidTokenError,
)

logger = structlog.get_logger(__name__)

ALL_BACKENDS_FAILED_DETAILS = (
    "Both BigQuery and the GA4 Data API failed (BigQuery is only attempted when a "
    "dataset id is supplied). Check that the service account has access to the "
    "property and dataset; see debug.dataSources for each backend's error."
)


async def invalid_token_handler(request: Request, exc: InvalidTokenError) -> JSONResponse:
    return JSONResponse(status_code=401, content={"error": str(exc)})


async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.info("Rejected request", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=400, content={"error": str(exc)})


async def all_backends_failed_handler(request: Request, exc: AllBackendsFailedError) -> JSONResponse:
    debug = exc.debug.to_dict() if exc.debug is not None else None
    return JSONResponse(
        status_code=502,
        content={"error": str(exc), "details": exc.details or ALL_BACKENDS_FAILED_DETAILS, "debug": debug},
    )


async def backend_query_error_handler(request: Request, exc: BackendQueryError) -> JSONResponse:
    logger.error("Backend call failed", path=request.url.path, backend=exc.backend, error=exc.reason)
    return JSONResponse(status_code=502, content={"error": str(exc), "backend": exc.backend})


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers (resolved by exception MRO, most specific wins)"""
    app.add_exception_handler(InvalidTokenError, invalid_token_handler)
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(AllBackendsFailedError, all_backends_failed_handler)
    app.add_exception_handler(BackendQueryError, backend_query_error_handler)
