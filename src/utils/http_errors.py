"""
Tradução de exceções para respostas JSON {"error": ...}.
"""
import logging
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.config.settings import ConfigurationError
from src.integrations.pipefy_client import PipefyGraphQLError

logger = logging.getLogger(__name__)


async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.warning(f"Configuração incompleta em {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})


async def graphql_error_handler(request: Request, exc: PipefyGraphQLError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"error": "Erro retornado pela API do Pipefy", "errors": exc.graphql_errors}
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None)
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Registra os handlers; erros inesperados são convertidos em 500 nas próprias rotas."""
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(PipefyGraphQLError, graphql_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
