"""
Translation of service errors into HTTP responses.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from groupkeeper.core.errors import ServiceError, Unauthenticated


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    headers = None
    if isinstance(exc, Unauthenticated):
        headers = {"WWW-Authenticate": "Bearer"}

    return JSONResponse(
        status_code=exc.status_code, content={"detail": exc.detail}, headers=headers
    )


def add_exception_handlers(app: FastAPI) -> FastAPI:
    """
    Register the handler answering every `ServiceError` with its status code
    and detail.
    """
    app.add_exception_handler(ServiceError, service_error_handler)
    return app
