"""
Servicio de alto nivel para consultas de diagnóstico en Pipefy.
Verifica la configuración del pipe, de la tabla de clientes y del campo conector.
"""
import re
import logging
from typing import Any, Dict, List, Optional

from src.config.settings import Settings
from src.integrations.pipefy_client import PipefyClient

logger = logging.getLogger(__name__)

CLIENTE_PATTERN = re.compile(r"client", re.IGNORECASE)


def _is_cliente_connector(pipe_field: Dict[str, Any]) -> bool:
    if (pipe_field.get("type") or "").lower() != "connector":
        return False
    return bool(
        CLIENTE_PATTERN.search(pipe_field.get("id") or "")
        or CLIENTE_PATTERN.search(pipe_field.get("label") or "")
    )


class PipefyService:
    """Servicio para operaciones de diagnóstico en Pipefy."""

    def __init__(self, client: PipefyClient, settings: Settings):
        self.client = client
        self.settings = settings

    def _first_pipe_id(self) -> str:
        return self.settings.require("PIPE_IDS")[0]

    async def get_first_pipe(self) -> Dict[str, Any]:
        """
        Obtiene id y nombre del primer pipe configurado.

        Raises:
            ConfigurationError: Si PIPE_IDS no está configurado
            PipefyGraphQLError: Si Pipefy responde con errores
        """
        pipe_id = self._first_pipe_id()
        pipe = await self.client.get_pipe(pipe_id) or {}
        logger.info(f"Pipe {pipe_id} consultado: {pipe.get('name')}")
        return {"id": pipe.get("id"), "name": pipe.get("name")}

    async def get_clientes_fields(self) -> Dict[str, Any]:
        """Retorna la metadata de campos de la tabla de clientes."""
        table_id = self.settings.require("CLIENTES_TABLE_ID")
        table = await self.client.get_table_fields(table_id) or {}
        fields = [
            {"id": f.get("id"), "label": f.get("label"), "type": f.get("type")}
            for f in table.get("table_fields") or []
        ]
        return {"tableId": table_id, "name": table.get("name"), "fields": fields}

    async def discover_cliente_field(self) -> Dict[str, Any]:
        """
        Busca el campo conector "cliente" en el primer pipe.

        El formulario inicial se revisa antes que las fases.

        Returns:
            Dict con pipeId, el campo encontrado (o None) y todos los conectores
        """
        pipe_id = self._first_pipe_id()
        pipe = await self.client.get_pipe_fields(pipe_id) or {}

        candidates: List[Dict[str, Any]] = []
        for pipe_field in pipe.get("start_form_fields") or []:
            candidates.append({**pipe_field, "phase": None})
        for phase in pipe.get("phases") or []:
            for pipe_field in phase.get("fields") or []:
                candidates.append({**pipe_field, "phase": phase.get("name")})

        connectors = [c for c in candidates if (c.get("type") or "").lower() == "connector"]
        found: Optional[Dict[str, Any]] = next(
            (c for c in connectors if _is_cliente_connector(c)), None
        )

        if found:
            logger.info(f"Campo conector de cliente encontrado: {found.get('id')}")
        else:
            logger.warning(f"Ningún campo conector de cliente en el pipe {pipe_id}")

        return {
            "pipeId": pipe_id,
            "field": found,
            "candidates": connectors,
            "configured": self.settings.CLIENTE_FIELD_ID
        }
