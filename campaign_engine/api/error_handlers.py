"""
Traducao das excecoes de dominio para respostas HTTP.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from campaign_engine.core.exceptions import (
    AuthenticationError,
    CampaignEngineError,
    CampaignStateError,
    ConfigurationError,
    DatabaseError,
    ExternalAPIError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Ordem importa: subclasses antes das bases
STATUS_CODES = (
    (NotFoundError, 404),
    (ValidationError, 400),
    (AuthenticationError, 401),
    (CampaignStateError, 400),
    (ExternalAPIError, 502),
    (DatabaseError, 503),
    (ConfigurationError, 500),
)


def status_code_for(exc: CampaignEngineError) -> int:
    for exc_type, status_code in STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 500


def _error_body(error: str, message: str, details: dict) -> dict:
    return {"error": error, "message": message, "details": details}


async def campaign_engine_exception_handler(
    request: Request, exc: CampaignEngineError
) -> JSONResponse:
    status_code = status_code_for(exc)
    error_type = type(exc).__name__

    # 4xx e erro do cliente: warning basta
    level = logging.ERROR if status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"{error_type} em {request.method} {request.url.path}: {exc.message}",
        extra={"error_type": error_type, "path": request.url.path},
    )

    return JSONResponse(status_code=status_code, content=_error_body(error_type, exc.message, exc.details))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """500 generico; a mensagem original fica so no log."""
    logger.exception(
        f"Excecao nao tratada em {request.method} {request.url.path}: {exc}",
        extra={"error_type": type(exc).__name__, "path": request.url.path},
    )
    return JSONResponse(
        status_code=500,
        content=_error_body("InternalServerError", "Internal server error", {}),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CampaignEngineError, campaign_engine_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
