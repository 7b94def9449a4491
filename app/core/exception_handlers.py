from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import DomainError, ValidationError

logger = logging.getLogger(__name__)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    extra = {
        "endpoint": request.url.path,
        "method": request.method,
        "status_code": exc.status_code,
        "kind": exc.kind,
    }
    if exc.status_code >= 500:
        logger.error("Falha ao processar requisição: %s", exc.message, exc_info=exc, extra=extra)
    else:
        logger.warning("Requisição rejeitada: %s", exc.message, extra=extra)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationError()
    logger.warning(
        "Corpo da requisição inválido errors=%s",
        len(exc.errors()),
        extra={"endpoint": request.url.path, "method": request.method, "status_code": 400, "kind": error.kind},
    )
    return JSONResponse(status_code=400, content=error.to_payload())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
