"""
Testes para as rotas de anexos.
"""
import pytest
from unittest.mock import AsyncMock
import httpx
from httpx import ASGITransport, AsyncClient

from app import app
from src.config.settings import ConfigurationError
from src.dependencies import get_anexos_service, get_pipefy_client, get_settings, get_response_cache
from src.integrations.pipefy_client import PipefyClient, PipefyGraphQLError, PipefyTimeoutError
from src.services.anexos_service import AnexosService

MOCK_CPF = "103.142.726-07"


@pytest.fixture
def client(mock_anexos_service):
    """Cliente HTTP para testes."""
    app.dependency_overrides = {get_anexos_service: lambda: mock_anexos_service}
    yield AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    app.dependency_overrides = {}


@pytest.mark.asyncio
async def test_root_health_text(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "rodando" in response.text


@pytest.mark.asyncio
async def test_missing_cpf_returns_400(client, mock_anexos_service):
    response = await client.get("/api/anexos")

    assert response.status_code == 400
    assert "cpf" in response.json()["error"]
    mock_anexos_service.buscar_anexos.assert_not_awaited()


@pytest.mark.asyncio
async def test_blank_cpf_returns_400(client):
    response = await client.get("/api/anexos", params={"cpf": "   "})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_passes_query_flags(client, mock_anexos_service):
    response = await client.get("/api/anexos", params={"cpf": MOCK_CPF, "deep": "0", "nocache": "1", "debug": "1"})

    assert response.status_code == 200
    mock_anexos_service.buscar_anexos.assert_awaited_once_with(MOCK_CPF, deep="0", nocache=True, debug=True)


@pytest.mark.asyncio
async def test_defaults(client, mock_anexos_service):
    await client.get("/api/anexos", params={"cpf": MOCK_CPF})

    mock_anexos_service.buscar_anexos.assert_awaited_once_with(MOCK_CPF, deep="auto", nocache=False, debug=False)


@pytest.mark.asyncio
async def test_not_found_is_200(client, mock_anexos_service):
    mock_anexos_service.buscar_anexos = AsyncMock(return_value={
        "cpf": MOCK_CPF, "found": False, "msg": "Cliente não encontrado para o CPF informado"
    })

    response = await client.get("/api/anexos", params={"cpf": MOCK_CPF})

    assert response.status_code == 200
    assert response.json()["found"] is False
    assert response.json()["msg"]


@pytest.mark.asyncio
async def test_invalid_deep_returns_400(client, mock_anexos_service):
    response = await client.get("/api/anexos", params={"cpf": MOCK_CPF, "deep": "9"})

    assert response.status_code == 400
    assert "deep" in response.json()["error"]
    mock_anexos_service.buscar_anexos.assert_not_awaited()


@pytest.mark.asyncio
async def test_value_error_from_service_returns_500(client, mock_anexos_service):
    mock_anexos_service.buscar_anexos = AsyncMock(side_effect=ValueError("Expecting value"))

    response = await client.get("/api/anexos", params={"cpf": MOCK_CPF})

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_configuration_error_returns_400(client, mock_anexos_service):
    mock_anexos_service.buscar_anexos = AsyncMock(side_effect=ConfigurationError("PIPE_IDS"))

    response = await client.get("/api/anexos", params={"cpf": MOCK_CPF})

    assert response.status_code == 400
    assert response.json() == {"error": "PIPE_IDS não configurado"}


@pytest.mark.asyncio
async def test_graphql_error_returns_502(client, mock_anexos_service):
    errors = [{"message": "Permission denied"}]
    mock_anexos_service.buscar_anexos = AsyncMock(side_effect=PipefyGraphQLError(errors))

    response = await client.get("/api/anexos", params={"cpf": MOCK_CPF})

    assert response.status_code == 502
    assert response.json()["errors"] == errors


@pytest.mark.asyncio
async def test_timeout_returns_500(client, mock_anexos_service):
    mock_anexos_service.buscar_anexos = AsyncMock(side_effect=PipefyTimeoutError("Timeout de 15.0s"))

    response = await client.get("/api/anexos", params={"cpf": MOCK_CPF})

    assert response.status_code == 500
    assert "Timeout" in response.json()["error"]


@pytest.mark.asyncio
async def test_anexos_by_card(client, mock_anexos_service):
    mock_anexos_service.anexo_by_card = AsyncMock(return_value={
        "cardId": "c1", "title": "Card", "ultimoAnexo": {"filename": "a.pdf"}
    })

    response = await client.get("/api/anexos-by-card", params={"id": "c1"})

    assert response.status_code == 200
    assert response.json()["ultimoAnexo"]["filename"] == "a.pdf"
    mock_anexos_service.anexo_by_card.assert_awaited_once_with("c1")


@pytest.mark.asyncio
async def test_anexos_by_card_missing_id(client):
    response = await client.get("/api/anexos-by-card")

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_anexos_by_card_not_found(client):
    response = await client.get("/api/anexos-by-card", params={"id": "nope"})

    assert response.status_code == 404
    assert "nope" in response.json()["error"]


@pytest.mark.asyncio
async def test_end_to_end_with_fake_pipefy(fake_pipefy, test_settings, response_cache):
    """GET /api/anexos com o Pipefy em memória."""
    app.dependency_overrides = {
        get_pipefy_client: lambda: fake_pipefy,
        get_settings: lambda: test_settings,
        get_response_cache: lambda: response_cache,
    }
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
            response = await http.get("/api/anexos", params={"cpf": MOCK_CPF, "debug": "1"})
            cached = await http.get("/api/anexos", params={"cpf": MOCK_CPF, "debug": "1"})
    finally:
        app.dependency_overrides = {}

    body = response.json()
    assert response.status_code == 200
    assert body["cards"][0]["ait"] == "AIT123"
    assert body["cards"][0]["anexoAIT"]["filename"] == "AIT123_comprovante.pdf"
    assert cached.json()["debug"]["fromCache"] is True
    assert cached.json()["cards"] == body["cards"]


@pytest.mark.asyncio
async def test_non_json_upstream_body_returns_500(test_settings, response_cache):
    """Pipefy respondendo 200 com HTML é falha upstream, não erro do chamador."""
    pipefy = PipefyClient(
        api_url="https://api.pipefy.test/graphql",
        token="tok",
        timeout=1.0,
        http_client=httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>bad gateway</html>"))
        )
    )
    app.dependency_overrides = {
        get_pipefy_client: lambda: pipefy,
        get_settings: lambda: test_settings,
        get_response_cache: lambda: response_cache,
    }
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
            response = await http.get("/api/anexos", params={"cpf": MOCK_CPF})
    finally:
        app.dependency_overrides = {}
        await pipefy.aclose()

    assert response.status_code == 500
    assert "Respuesta inválida" in response.json()["error"]
