"""
Cliente GraphQL para la API de Pipefy.
Consulta registros de tablas, pipes, fases y cards (con sus anexos).
"""
import asyncio
import httpx
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional
from src.config.settings import settings as default_settings
from src.utils.error_handler import with_error_handling, get_error_handler

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
MAX_PAGES = 50

CARD_NODE = """
  id
  title
  fields {
    name
    value
    field {
      id
      label
      type
    }
  }
  attachments {
    url
    createdAt
  }
"""

PAGE_INFO = "pageInfo { hasNextPage endCursor }"


class PipefyAPIError(Exception):
    """Excepción personalizada para errores de la API de Pipefy."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PipefyTimeoutError(PipefyAPIError, TimeoutError):
    """La llamada GraphQL superó el timeout configurado."""


class PipefyGraphQLError(PipefyAPIError):
    """La respuesta de Pipefy trajo el campo 'errors'."""

    def __init__(self, errors: List[Any]):
        super().__init__(f"Error GraphQL en Pipefy: {errors}")
        self.graphql_errors = errors


async def paginate(
    fetch_page: Callable[[int, Optional[str]], Awaitable[Dict[str, Any]]],
    page_size: int = PAGE_SIZE,
    max_pages: int = MAX_PAGES
) -> AsyncIterator[Dict[str, Any]]:
    """
    Recorre una conexión paginada por cursor y entrega cada nodo.

    Args:
        fetch_page: Corrutina (first, after) -> {"edges": [...], "pageInfo": {...}}
        page_size: Tamaño de página
        max_pages: Límite de páginas recorridas

    Yields:
        Los nodos de cada edge, en orden
    """
    after = None
    for _ in range(max_pages):
        connection = await fetch_page(page_size, after) or {}
        for edge in connection.get("edges") or []:
            node = (edge or {}).get("node")
            if node:
                yield node

        page_info = connection.get("pageInfo") or {}
        if not page_info.get("hasNextPage") or not page_info.get("endCursor"):
            return
        after = page_info["endCursor"]

    logger.warning(f"Paginación interrumpida al alcanzar el límite de {max_pages} páginas")


class PipefyClient:
    """Cliente para interactuar con la API GraphQL de Pipefy."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.api_url = api_url or default_settings.PIPEFY_API_URL
        self.timeout = timeout if timeout is not None else default_settings.graphql_timeout
        token = token if token is not None else default_settings.PIPEFY_TOKEN
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json"
        }

        # Pool de conexiones persistente hacia api.pipefy.com
        self._client = http_client or httpx.AsyncClient(
            headers=self.headers,
            timeout=httpx.Timeout(self.timeout)
        )

    async def aclose(self) -> None:
        """Cierra el pool de conexiones."""
        await self._client.aclose()

    @with_error_handling("pipefy", context={"operation": "execute"})
    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Ejecuta una consulta GraphQL.

        Args:
            query (str): Documento GraphQL
            variables (dict, optional): Variables de la consulta

        Returns:
            Dict con las claves 'data' y/o 'errors' tal como vienen de Pipefy

        Raises:
            PipefyTimeoutError: Si la llamada supera el timeout
            PipefyAPIError: Si hay error HTTP, de transporte o el cuerpo no es JSON
        """
        # El logging de los fallos lo hace with_error_handling
        try:
            response = await asyncio.wait_for(
                self._client.post(
                    self.api_url,
                    json={"query": query, "variables": variables or {}},
                    headers=self.headers
                ),
                timeout=self.timeout
            )
            response.raise_for_status()
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise PipefyTimeoutError(f"Timeout de {self.timeout}s en la llamada GraphQL a Pipefy") from e
        except httpx.HTTPStatusError as e:
            raise PipefyAPIError(
                f"Error HTTP en Pipefy: {e.response.status_code} - {e.response.text}",
                status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise PipefyAPIError(f"Error de conexión con Pipefy: {str(e)}") from e

        try:
            return response.json()
        except ValueError as e:
            raise PipefyAPIError(f"Respuesta inválida de Pipefy: {response.text[:200]}") from e

    async def query_data(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Ejecuta la consulta y retorna solo 'data'.

        Raises:
            PipefyGraphQLError: Si la respuesta trae 'errors'
        """
        result = await self.execute(query, variables)

        if result.get("errors"):
            error = PipefyGraphQLError(result["errors"])
            handler = get_error_handler()
            handler.log_error(handler.classify_error(error, "pipefy"), {"variables": variables})
            raise error

        return result.get("data") or {}

    async def get_pipe(self, pipe_id: str) -> Optional[Dict[str, Any]]:
        """Obtiene id y nombre de un pipe."""
        query = """
        query GetPipe($pipeId: ID!) {
          pipe(id: $pipeId) {
            id
            name
          }
        }
        """
        data = await self.query_data(query, {"pipeId": str(pipe_id)})
        return data.get("pipe")

    async def get_pipe_phases(self, pipe_id: str) -> List[Dict[str, Any]]:
        """Lista las fases de un pipe."""
        query = """
        query GetPipePhases($pipeId: ID!) {
          pipe(id: $pipeId) {
            phases {
              id
              name
            }
          }
        }
        """
        data = await self.query_data(query, {"pipeId": str(pipe_id)})
        return (data.get("pipe") or {}).get("phases") or []

    async def get_pipe_fields(self, pipe_id: str) -> Optional[Dict[str, Any]]:
        """Obtiene los campos del formulario inicial y de cada fase del pipe."""
        query = """
        query GetPipeFields($pipeId: ID!) {
          pipe(id: $pipeId) {
            id
            name
            start_form_fields {
              id
              label
              type
            }
            phases {
              id
              name
              fields {
                id
                label
                type
              }
            }
          }
        }
        """
        data = await self.query_data(query, {"pipeId": str(pipe_id)})
        return data.get("pipe")

    async def get_table_fields(self, table_id: str) -> Optional[Dict[str, Any]]:
        """Obtiene la metadata de campos de una tabla de base de datos."""
        query = """
        query GetTableFields($tableId: ID!) {
          table(id: $tableId) {
            id
            name
            table_fields {
              id
              label
              type
            }
          }
        }
        """
        data = await self.query_data(query, {"tableId": str(table_id)})
        return data.get("table")

    async def find_records(self, table_id: str, field_id: str, value: str) -> List[Dict[str, Any]]:
        """Busca registros de una tabla por valor exacto de un campo."""
        query = """
        query FindRecords($tableId: ID!, $fieldId: String!, $fieldValue: String!) {
          findRecords(tableId: $tableId, search: {fieldId: $fieldId, fieldValue: $fieldValue}) {
            edges {
              node {
                id
                title
              }
            }
          }
        }
        """
        variables = {"tableId": str(table_id), "fieldId": field_id, "fieldValue": value}
        data = await self.query_data(query, variables)
        edges = (data.get("findRecords") or {}).get("edges") or []
        return [edge["node"] for edge in edges if edge and edge.get("node")]

    async def table_records_page(self, table_id: str, first: int, after: Optional[str]) -> Dict[str, Any]:
        """Una página de registros de la tabla."""
        query = """
        query TableRecords($tableId: ID!, $first: Int!, $after: String) {
          table_records(table_id: $tableId, first: $first, after: $after) {
            edges {
              node {
                id
                title
              }
            }
            %s
          }
        }
        """ % PAGE_INFO
        variables = {"tableId": str(table_id), "first": first, "after": after}
        data = await self.query_data(query, variables)
        return data.get("table_records") or {}

    async def find_cards_page(
        self,
        pipe_id: str,
        field_id: str,
        value: str,
        first: int,
        after: Optional[str]
    ) -> Dict[str, Any]:
        """Una página de cards cuyo campo (conector) tiene el valor dado."""
        query = """
        query FindCards($pipeId: ID!, $fieldId: String!, $fieldValue: String!, $first: Int!, $after: String) {
          findCards(pipeId: $pipeId, search: {fieldId: $fieldId, fieldValue: $fieldValue}, first: $first, after: $after) {
            edges {
              node {
                %s
              }
            }
            %s
          }
        }
        """ % (CARD_NODE, PAGE_INFO)
        variables = {
            "pipeId": str(pipe_id),
            "fieldId": field_id,
            "fieldValue": str(value),
            "first": first,
            "after": after
        }
        data = await self.query_data(query, variables)
        return data.get("findCards") or {}

    async def phase_cards_page(self, phase_id: str, first: int, after: Optional[str]) -> Dict[str, Any]:
        """Una página de cards de una fase."""
        query = """
        query PhaseCards($phaseId: ID!, $first: Int!, $after: String) {
          phase(id: $phaseId) {
            cards(first: $first, after: $after) {
              edges {
                node {
                  %s
                }
              }
              %s
            }
          }
        }
        """ % (CARD_NODE, PAGE_INFO)
        variables = {"phaseId": str(phase_id), "first": first, "after": after}
        data = await self.query_data(query, variables)
        return (data.get("phase") or {}).get("cards") or {}

    async def get_card(self, card_id: str) -> Optional[Dict[str, Any]]:
        """
        Obtiene un card con sus campos y anexos.

        Returns:
            Dict del card o None si no existe
        """
        query = """
        query GetCard($cardId: ID!) {
          card(id: $cardId) {
            %s
          }
        }
        """ % CARD_NODE
        data = await self.query_data(query, {"cardId": str(card_id)})
        return data.get("card")
