"""
Dependencias para inyección en rutas FastAPI.
"""
from typing import Optional
from fastapi import Depends

from src.config.settings import settings as app_settings
from src.config.settings import Settings
from src.integrations.pipefy_client import PipefyClient
from src.services.anexos_service import AnexosService
from src.services.cache_service import ResponseCache
from src.services.pipefy_service import PipefyService

# Instancias globales, creadas en el lifespan (o bajo demanda)
pipefy_client: Optional[PipefyClient] = None
response_cache: Optional[ResponseCache] = None


def get_settings() -> Settings:
    return app_settings


def get_pipefy_client() -> PipefyClient:
    """
    Dependencia para obtener el cliente Pipefy (pool de conexiones compartido).

    Returns:
        PipefyClient: Cliente inicializado
    """
    global pipefy_client
    if pipefy_client is None:
        pipefy_client = PipefyClient()
    return pipefy_client


def get_response_cache(settings: Settings = Depends(get_settings)) -> ResponseCache:
    """Dependencia para obtener el cache de respuestas."""
    global response_cache
    if response_cache is None:
        response_cache = ResponseCache(settings.cache_ttl, settings.CACHE_MAX_ENTRIES)
    return response_cache


def get_anexos_service(
    client: PipefyClient = Depends(get_pipefy_client),
    settings: Settings = Depends(get_settings),
    cache: ResponseCache = Depends(get_response_cache)
) -> AnexosService:
    """
    Dependencia para obtener el servicio de anexos.

    Args:
        client: Cliente Pipefy (inyectado)
        settings: Configuración (inyectada)
        cache: Cache de respuestas (inyectado)

    Returns:
        AnexosService: Servicio inicializado
    """
    return AnexosService(client=client, settings=settings, cache=cache)


def get_pipefy_service(
    client: PipefyClient = Depends(get_pipefy_client),
    settings: Settings = Depends(get_settings)
) -> PipefyService:
    return PipefyService(client=client, settings=settings)


async def close_pipefy_client() -> None:
    """Cierra el pool de conexiones en el shutdown."""
    global pipefy_client
    if pipefy_client is not None:
        await pipefy_client.aclose()
        pipefy_client = None
