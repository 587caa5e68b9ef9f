"""
Rotas de consulta de anexos por CPF e por card.
"""
import logging
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.config.settings import ConfigurationError
from src.integrations.pipefy_client import PipefyGraphQLError
from src.services.anexos_service import AnexosService
from src.services.card_service import normalize_deep_mode
from src.dependencies import get_anexos_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Anexos"])


class AnexoInfo(BaseModel):
    """Anexo de um card."""
    filename: Optional[str] = Field(None, description="Nome do arquivo extraído da URL")
    url: Optional[str] = None
    createdAt: Optional[str] = None
    isAIT: bool = False


class AnexoByCardResponse(BaseModel):
    """Anexo mais recente de um card."""
    cardId: str
    title: Optional[str] = None
    ultimoAnexo: Optional[AnexoInfo] = None


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "sim")


@router.get("/anexos")
async def get_anexos(
    cpf: Optional[str] = Query(None, description="CPF com ou sem pontuação"),
    deep: str = Query("auto", description="0, 1 ou auto"),
    nocache: Optional[str] = Query(None),
    debug: Optional[str] = Query(None),
    anexos_service: AnexosService = Depends(get_anexos_service)
) -> Dict[str, Any]:
    """
    Busca o cliente pelo CPF e retorna os cards com AIT e anexos.

    Args:
        cpf: CPF informado
        deep: Modo da busca (0 = só conector, 1 = varredura forçada, auto = com fallback)
        nocache: Se "1", ignora o cache
        debug: Se "1", inclui informações de debug
        anexos_service: Serviço de anexos (injetado)

    Returns:
        {cpf, found, cliente, cards} ou {cpf, found: false, msg}

    Raises:
        HTTPException: 400 se cpf ausente ou deep inválido, 500 em erro inesperado
    """
    if not cpf or not cpf.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Parâmetro 'cpf' é obrigatório"
        )

    try:
        deep_mode = normalize_deep_mode(deep)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        return await anexos_service.buscar_anexos(
            cpf,
            deep=deep_mode,
            nocache=_flag(nocache),
            debug=_flag(debug)
        )
    except (ConfigurationError, PipefyGraphQLError):
        raise
    except Exception as e:
        logger.error(f"❌ Erro ao buscar anexos do CPF {cpf}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or e.__class__.__name__
        )


@router.get("/anexos-by-card", response_model=AnexoByCardResponse)
async def get_anexos_by_card(
    id: Optional[str] = Query(None, description="ID do card"),
    anexos_service: AnexosService = Depends(get_anexos_service)
) -> Dict[str, Any]:
    """Retorna o anexo mais recente de um card."""
    if not id or not id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Parâmetro 'id' é obrigatório"
        )

    try:
        result = await anexos_service.anexo_by_card(id.strip())
    except (ConfigurationError, PipefyGraphQLError):
        raise
    except Exception as e:
        logger.error(f"❌ Erro ao buscar anexos do card {id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or e.__class__.__name__
        )

    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Card {id} não encontrado"
        )
    return result
