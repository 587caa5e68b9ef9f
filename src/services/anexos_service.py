"""
Serviço principal: CPF -> cliente -> cards -> AIT e anexos.

Orquestra o resolvedor de clientes, o coletor de cards (busca rápida com
fallback profundo), o extrator de anexos e o cache de respostas.
"""
import copy
import logging
import time
from typing import Any, Dict, Optional

from src.config.settings import Settings
from src.integrations.pipefy_client import PipefyClient
from src.services.anexo_service import FieldMatcher, extract_card
from src.services.cache_service import ResponseCache
from src.services.card_service import CardCollector, normalize_deep_mode, run_search
from src.services.cliente_service import ClienteResolver

logger = logging.getLogger(__name__)

NOT_FOUND_MSG = "Cliente não encontrado para o CPF informado"


class AnexosService:
    """Busca os cards e anexos de um cliente pelo CPF."""

    def __init__(
        self,
        client: PipefyClient,
        settings: Settings,
        cache: ResponseCache,
        matcher: Optional[FieldMatcher] = None
    ):
        self.client = client
        self.settings = settings
        self.cache = cache
        self.matcher = matcher or FieldMatcher(settings.AIT_FIELD_ID, settings.AIT_LABEL_PATTERN)
        self.collector = CardCollector(client, settings.CLIENTE_FIELD_ID)

    def _resolver(self) -> ClienteResolver:
        return ClienteResolver(
            self.client,
            self.settings.require("CLIENTES_TABLE_ID"),
            self.settings.CPF_FIELD_ID
        )

    async def buscar_anexos(
        self,
        cpf: str,
        deep: Optional[str] = "auto",
        nocache: bool = False,
        debug: bool = False
    ) -> Dict[str, Any]:
        """
        Busca os anexos de um CPF.

        Args:
            cpf: CPF como informado pelo usuário
            deep: "0", "1" ou "auto"
            nocache: Ignora a leitura do cache
            debug: Inclui o bloco de debug na resposta

        Returns:
            Dict com cpf, found, cliente e cards (ou msg quando não encontrado)

        Raises:
            ValueError: Se deep for inválido
            ConfigurationError: Se faltar CLIENTES_TABLE_ID ou PIPE_IDS
        """
        cpf = cpf.strip()
        deep_mode = normalize_deep_mode(deep)
        resolver = self._resolver()
        pipe_ids = self.settings.require("PIPE_IDS")

        key = self.cache.make_key(cpf, deep_mode)
        if not nocache:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info(f"Resposta do cache para CPF {cpf} (deep={deep_mode})")
                payload = copy.deepcopy(cached)
                payload["debug"]["fromCache"] = True
                return self._present(payload, debug)

        start = time.perf_counter()
        cliente = await resolver.resolve(cpf)

        if cliente is None:
            payload = {
                "cpf": cpf,
                "found": False,
                "msg": NOT_FOUND_MSG,
                "debug": {
                    "perPipe": [],
                    "timeMs": self._elapsed_ms(start),
                    "deepMode": deep_mode,
                    "outcome": None,
                    "fromCache": False
                }
            }
            self.cache.set(key, copy.deepcopy(payload))
            return self._present(payload, debug)

        async def collect_all(deep_scan: bool):
            return await self.collector.collect_all(pipe_ids, cliente, cpf, deep_scan)

        search = await run_search(collect_all, deep_mode)

        cards = [
            extract_card(card, self.matcher, result.pipe_id).to_dict()
            for result in search.results
            for card in result.cards
        ]

        payload = {
            "cpf": cpf,
            "found": True,
            "cliente": cliente.to_dict(),
            "cards": cards,
            "debug": {
                "perPipe": [result.to_debug() for result in search.results],
                "timeMs": self._elapsed_ms(start),
                "deepMode": deep_mode,
                "outcome": search.outcome.value,
                "fromCache": False
            }
        }
        logger.info(
            f"CPF {cpf}: cliente {cliente.id}, {len(cards)} cards ({search.outcome.value}) "
            f"em {payload['debug']['timeMs']}ms"
        )

        self.cache.set(key, copy.deepcopy(payload))
        return self._present(payload, debug)

    async def anexo_by_card(self, card_id: str) -> Optional[Dict[str, Any]]:
        """
        Retorna o anexo mais recente de um card.

        Returns:
            Dict com cardId, title e ultimoAnexo, ou None se o card não existe
        """
        card = await self.client.get_card(card_id)
        if not card:
            return None

        result = extract_card(card, self.matcher)
        ultimo = result.ultimo_anexo
        return {
            "cardId": result.card_id,
            "title": result.title,
            "ultimoAnexo": ultimo.to_dict() if ultimo else None
        }

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)

    @staticmethod
    def _present(payload: Dict[str, Any], debug: bool) -> Dict[str, Any]:
        if not debug:
            payload.pop("debug", None)
        return payload
