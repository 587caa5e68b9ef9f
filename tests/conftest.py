"""
Configuração do pytest e fixtures comuns para os testes.
"""

import pytest
from typing import Any, Dict, List, Optional
from unittest.mock import Mock, AsyncMock

from src.config.settings import Settings
from src.services.cache_service import ResponseCache
from src.utils.error_handler import reset_error_handler


def make_page(items: List[Dict[str, Any]], first: int, after: Optional[str]) -> Dict[str, Any]:
    """Monta uma conexão paginada por cursor no formato do Pipefy."""
    start = int(after or 0)
    end = start + first
    return {
        "edges": [{"node": item} for item in items[start:end]],
        "pageInfo": {"hasNextPage": end < len(items), "endCursor": str(end)}
    }


class FakePipefyClient:
    """Pipefy em memória: tabela de clientes, pipes, fases e vínculos de conector."""

    def __init__(
        self,
        records: Optional[List[Dict[str, Any]]] = None,
        phases: Optional[Dict[str, Dict[str, List[Dict[str, Any]]]]] = None,
        connector: Optional[Dict[tuple, List[Dict[str, Any]]]] = None
    ):
        # records: [{"id", "title", "cpf"}]; "cpf" é o valor do campo de CPF
        self.records = records or []
        # phases: pipe_id -> {phase_id: [cards]}
        self.phases = phases or {}
        # connector: (pipe_id, cliente_id) -> [cards]
        self.connector = connector or {}
        self.calls: List[tuple] = []

    async def find_records(self, table_id, field_id, value):
        self.calls.append(("find_records", value))
        return [
            {"id": r["id"], "title": r["title"]}
            for r in self.records if r.get("cpf") == value
        ]

    async def table_records_page(self, table_id, first, after):
        self.calls.append(("table_records", after))
        nodes = [{"id": r["id"], "title": r["title"]} for r in self.records]
        return make_page(nodes, first, after)

    async def find_cards_page(self, pipe_id, field_id, value, first, after):
        self.calls.append(("find_cards", pipe_id, value, after))
        return make_page(self.connector.get((pipe_id, value), []), first, after)

    async def get_pipe_phases(self, pipe_id):
        self.calls.append(("phases", pipe_id))
        return [{"id": phase_id, "name": phase_id} for phase_id in self.phases.get(pipe_id, {})]

    async def phase_cards_page(self, phase_id, first, after):
        self.calls.append(("phase_cards", phase_id, after))
        for pipe_phases in self.phases.values():
            if phase_id in pipe_phases:
                return make_page(pipe_phases[phase_id], first, after)
        return make_page([], first, after)

    async def get_card(self, card_id):
        self.calls.append(("card", card_id))
        cards = [c for cs in self.connector.values() for c in cs]
        cards += [c for phases in self.phases.values() for cs in phases.values() for c in cs]
        return next((c for c in cards if str(c["id"]) == str(card_id)), None)


def make_card(card_id: str, title: str, ait: Optional[str] = None, attachments=None) -> Dict[str, Any]:
    fields = []
    if ait is not None:
        fields.append({"name": "AIT", "value": ait, "field": {"id": "ait_field", "label": "AIT", "type": "short_text"}})
    return {
        "id": card_id,
        "title": title,
        "fields": fields,
        "attachments": attachments or []
    }


@pytest.fixture(autouse=True)
def clean_error_handler():
    """Cada teste começa com um gerenciador de erros novo."""
    reset_error_handler()
    yield
    reset_error_handler()


@pytest.fixture
def test_settings():
    """Configuração isolada do ambiente."""
    return Settings.from_env({
        "PIPEFY_TOKEN": "test_pipefy_token",
        "CLIENTES_TABLE_ID": "table_1",
        "CPF_FIELD_ID": "cpf",
        "CLIENTE_FIELD_ID": "cliente",
        "PIPE_IDS": "pipe_1",
        "CACHE_TTL_MS": "20000"
    })


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def response_cache(clock):
    """Cache novo por teste."""
    return ResponseCache(ttl_seconds=20.0, clock=clock)


@pytest.fixture
def sample_attachments():
    """Anexos fora de ordem: T1, T3, T2."""
    return [
        {"url": "https://files.pipefy.com/orgs/1/uploads/a/T1_doc.pdf", "createdAt": "2024-01-01T10:00:00Z"},
        {"url": "https://files.pipefy.com/orgs/1/uploads/b/T3_doc.pdf", "createdAt": "2024-03-01T10:00:00Z"},
        {"url": "https://files.pipefy.com/orgs/1/uploads/c/T2_doc.pdf", "createdAt": "2024-02-01T10:00:00Z"},
    ]


@pytest.fixture
def fake_pipefy():
    """Pipefy com o cliente 10314272607 e um card vinculado pelo conector."""
    card = make_card(
        "card_1",
        "Processo Fulano",
        ait="AIT123",
        attachments=[{
            "url": "https://files.pipefy.com/uploads/x/AIT123_comprovante.pdf",
            "createdAt": "2024-05-01T12:00:00Z"
        }]
    )
    return FakePipefyClient(
        records=[
            {"id": "rec_0", "title": "Outro Cliente"},
            {"id": "rec_1", "title": "10314272607"},
        ],
        connector={("pipe_1", "rec_1"): [card]}
    )


@pytest.fixture
def mock_anexos_service():
    """Mock do serviço de anexos."""
    mock_service = Mock()
    mock_service.buscar_anexos = AsyncMock(return_value={"cpf": "1", "found": False, "msg": "x"})
    mock_service.anexo_by_card = AsyncMock(return_value=None)
    return mock_service


@pytest.fixture
def mock_pipefy_service():
    """Mock do serviço de diagnóstico."""
    mock_service = Mock()
    mock_service.get_first_pipe = AsyncMock(return_value={"id": "pipe_1", "name": "Protocolos"})
    mock_service.get_clientes_fields = AsyncMock(return_value={"tableId": "table_1", "fields": []})
    mock_service.discover_cliente_field = AsyncMock(return_value={"pipeId": "pipe_1", "field": None})
    return mock_service


@pytest.fixture
def card_factory():
    return make_card


@pytest.fixture
def fake_client_factory():
    return FakePipefyClient
