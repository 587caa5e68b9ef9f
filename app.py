#!/usr/bin/env python3
"""
Serviço de Anexos Pipefy por CPF.
Resolve o CPF para um cliente da tabela de referência, busca os cards
vinculados nos pipes configurados e retorna o AIT e o comprovante protocolo.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from dotenv import load_dotenv

# Carregar variáveis de ambiente
load_dotenv()

from src.config.settings import settings
from src import dependencies
from src.routes.anexos_routes import router as anexos_router
from src.routes.diagnostico_routes import router as diagnostico_router
from src.utils.error_handler import get_error_handler
from src.utils.http_errors import register_exception_handlers

# Configuração de logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

PUBLIC_DIR = Path(__file__).parent / "public"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Gerencia o ciclo de vida da aplicação FastAPI."""
    # Startup
    logger.info("🚀 Iniciando Serviço de Anexos Pipefy...")

    missing_vars = settings.validate_required_vars()
    if missing_vars:
        logger.warning(f"⚠️ Variáveis de ambiente faltantes: {', '.join(missing_vars)}")

    dependencies.get_pipefy_client()
    logger.info(f"🔗 Pipes configurados: {', '.join(settings.PIPE_IDS) or '(nenhum)'}")
    logger.info(f"⏱️ Timeout GraphQL: {settings.GRAPHQL_TIMEOUT_MS}ms | Cache TTL: {settings.CACHE_TTL_MS}ms")
    logger.info(f"✅ Servidor rodando na porta {settings.PORT}")

    yield

    # Shutdown
    await dependencies.close_pipefy_client()
    logger.info("INFO: Encerrando Serviço de Anexos Pipefy...")


app = FastAPI(
    lifespan=lifespan,
    title="Pipefy Anexos Service",
    description="Consulta de cards, AIT e comprovantes de protocolo no Pipefy por CPF"
)

register_exception_handlers(app)
app.include_router(anexos_router)
app.include_router(diagnostico_router)

if PUBLIC_DIR.is_dir():
    app.mount("/static", StaticFiles(directory=PUBLIC_DIR), name="static")


@app.get("/", response_class=PlainTextResponse)
async def root():
    return "Servidor de anexos Pipefy rodando"


@app.get("/health")
async def health_check():
    """Endpoint de verificação de saúde."""
    cache = dependencies.response_cache
    return {
        "status": "healthy",
        "service": "pipefy_anexos_service",
        "pipefy_configured": bool(settings.PIPEFY_TOKEN),
        "pipes": settings.PIPE_IDS,
        "cache_entries": len(cache) if cache is not None else 0,
        "api_stats": get_error_handler().get_error_stats()
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
