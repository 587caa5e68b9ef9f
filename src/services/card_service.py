"""
Coleta de cards vinculados a um cliente nos pipes configurados.

Duas estratégias, unidas e deduplicadas por id:
- busca pelo campo conector (rápida);
- varredura fase a fase comparando o título com o CPF (profunda).
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from src.integrations.pipefy_client import PipefyClient, paginate, PAGE_SIZE, MAX_PAGES
from src.services.cliente_service import ClienteRecord, only_digits

logger = logging.getLogger(__name__)

DEEP_MODES = ("0", "1", "auto")


class SearchOutcome(str, Enum):
    """Como o resultado final foi obtido."""
    FAST = "fast"
    DEEP_FALLBACK = "deep-fallback"
    FORCED_DEEP = "forced-deep"


@dataclass
class CollectResult:
    """Cards de um pipe e quantos edges cada estratégia retornou."""
    pipe_id: str
    cards: List[Dict[str, Any]] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=lambda: {"connector": 0, "deep": 0})

    def to_debug(self) -> Dict[str, Any]:
        return {
            "pipeId": self.pipe_id,
            "connector": self.counts.get("connector", 0),
            "deep": self.counts.get("deep", 0),
            "total": len(self.cards)
        }


@dataclass
class SearchResult:
    results: List[CollectResult]
    outcome: SearchOutcome

    @property
    def total_cards(self) -> int:
        return sum(len(result.cards) for result in self.results)


def normalize_deep_mode(value: Optional[str]) -> str:
    """
    Normaliza o parâmetro deep.

    Raises:
        ValueError: Se o valor não for 0, 1 ou auto
    """
    mode = (value or "auto").strip().lower()
    if mode not in DEEP_MODES:
        raise ValueError(f"Parâmetro deep inválido: {value}. Válidos: {', '.join(DEEP_MODES)}")
    return mode


def title_matches_cpf(title: Optional[str], cpf_input: str, cpf_digits: str) -> bool:
    """Substring do CPF bruto no título, ou dos dígitos no título só com dígitos."""
    title = title or ""
    if cpf_input and cpf_input in title:
        return True
    return bool(cpf_digits) and cpf_digits in only_digits(title)


def dedupe_cards(cards: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Remove cards repetidos pelo id; a primeira ocorrência vence."""
    seen = set()
    unique = []
    for card in cards:
        card_id = str(card.get("id"))
        if card_id in seen:
            continue
        seen.add(card_id)
        unique.append(card)
    return unique


async def run_search(
    collect_all: Callable[[bool], Awaitable[List[CollectResult]]],
    deep_mode: str
) -> SearchResult:
    """
    Seleciona a estratégia de busca.

    - "1": coleta profunda direto (forced-deep);
    - "0": só busca rápida, sem fallback (fast);
    - "auto": busca rápida e, se nenhum card aparecer em nenhum pipe,
      repete tudo com varredura profunda (deep-fallback).
    """
    deep_mode = normalize_deep_mode(deep_mode)

    if deep_mode == "1":
        return SearchResult(await collect_all(True), SearchOutcome.FORCED_DEEP)

    results = await collect_all(False)
    search = SearchResult(results, SearchOutcome.FAST)

    if deep_mode == "auto" and search.total_cards == 0:
        logger.info("Busca rápida sem resultados; executando varredura profunda")
        search = SearchResult(await collect_all(True), SearchOutcome.DEEP_FALLBACK)

    return search


class CardCollector:
    """Coleta os cards de um cliente em um pipe."""

    def __init__(
        self,
        client: PipefyClient,
        connector_field_id: str = "cliente",
        page_size: int = PAGE_SIZE,
        max_pages: int = MAX_PAGES
    ):
        self.client = client
        self.connector_field_id = connector_field_id
        self.page_size = page_size
        self.max_pages = max_pages

    async def collect(
        self,
        pipe_id: str,
        cliente: ClienteRecord,
        cpf_input: str,
        deep_scan: bool = False
    ) -> CollectResult:
        """
        Coleta os cards do cliente no pipe.

        Args:
            pipe_id: ID do pipe
            cliente: Registro do cliente resolvido
            cpf_input: CPF como informado (usado na varredura por título)
            deep_scan: Se deve varrer todas as fases

        Returns:
            CollectResult com os cards deduplicados e as contagens
        """
        result = CollectResult(pipe_id=str(pipe_id))

        connector_cards = await self._connector_search(pipe_id, cliente.id)
        result.counts["connector"] = len(connector_cards)

        deep_cards: List[Dict[str, Any]] = []
        if deep_scan:
            deep_cards = await self._deep_scan(pipe_id, cpf_input)
        result.counts["deep"] = len(deep_cards)

        result.cards = dedupe_cards(connector_cards + deep_cards)
        logger.info(
            f"Pipe {pipe_id}: {len(result.cards)} cards "
            f"(conector={result.counts['connector']}, profunda={result.counts['deep']})"
        )
        return result

    async def collect_all(
        self,
        pipe_ids: List[str],
        cliente: ClienteRecord,
        cpf_input: str,
        deep_scan: bool = False
    ) -> List[CollectResult]:
        """Coleta em todos os pipes em paralelo; qualquer falha aborta o conjunto."""
        return list(await asyncio.gather(*[
            self.collect(pipe_id, cliente, cpf_input, deep_scan) for pipe_id in pipe_ids
        ]))

    async def _connector_search(self, pipe_id: str, cliente_id: str) -> List[Dict[str, Any]]:
        async def fetch_page(first, after):
            return await self.client.find_cards_page(
                pipe_id, self.connector_field_id, cliente_id, first, after
            )

        return [node async for node in paginate(fetch_page, self.page_size, self.max_pages)]

    async def _deep_scan(self, pipe_id: str, cpf_input: str) -> List[Dict[str, Any]]:
        cpf_input = (cpf_input or "").strip()
        cpf_digits = only_digits(cpf_input)
        matches = []

        for phase in await self.client.get_pipe_phases(pipe_id):
            phase_id = phase.get("id")

            async def fetch_page(first, after, phase_id=phase_id):
                return await self.client.phase_cards_page(phase_id, first, after)

            async for node in paginate(fetch_page, self.page_size, self.max_pages):
                if title_matches_cpf(node.get("title"), cpf_input, cpf_digits):
                    matches.append(node)

        return matches
