"""
Rotas de diagnóstico da configuração do Pipefy.
"""
import logging
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from src.config.settings import ConfigurationError
from src.integrations.pipefy_client import PipefyGraphQLError
from src.services.pipefy_service import PipefyService
from src.dependencies import get_pipefy_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Diagnóstico"])


class PipeInfo(BaseModel):
    """Identificação de um pipe."""
    id: Optional[str] = Field(None, description="ID do pipe")
    name: Optional[str] = Field(None, description="Nome do pipe")


class TableFieldInfo(BaseModel):
    id: Optional[str] = None
    label: Optional[str] = None
    type: Optional[str] = None


class ClientesFieldsResponse(BaseModel):
    """Metadata da tabela de clientes."""
    tableId: str = Field(..., description="ID da tabela de clientes")
    name: Optional[str] = Field(None, description="Nome da tabela")
    fields: List[TableFieldInfo] = Field(default_factory=list)


def _internal_error(operation: str, e: Exception) -> HTTPException:
    logger.error(f"❌ Erro em {operation}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(e) or e.__class__.__name__
    )


@router.get("/teste", response_model=PipeInfo)
async def teste_pipe(pipefy_service: PipefyService = Depends(get_pipefy_service)) -> Dict[str, Any]:
    """Retorna id e nome do primeiro pipe configurado."""
    try:
        return await pipefy_service.get_first_pipe()
    except (ConfigurationError, PipefyGraphQLError):
        raise
    except Exception as e:
        raise _internal_error("teste", e)


@router.get("/clientes-fields", response_model=ClientesFieldsResponse)
async def clientes_fields(pipefy_service: PipefyService = Depends(get_pipefy_service)) -> Dict[str, Any]:
    """Metadata de campos da tabela de clientes."""
    try:
        return await pipefy_service.get_clientes_fields()
    except (ConfigurationError, PipefyGraphQLError):
        raise
    except Exception as e:
        raise _internal_error("clientes-fields", e)


@router.get("/discover-clientes")
async def discover_clientes(pipefy_service: PipefyService = Depends(get_pipefy_service)) -> Dict[str, Any]:
    """Procura o campo conector de cliente no primeiro pipe."""
    try:
        return await pipefy_service.discover_cliente_field()
    except (ConfigurationError, PipefyGraphQLError):
        raise
    except Exception as e:
        raise _internal_error("discover-clientes", e)
