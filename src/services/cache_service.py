"""
Cache em memória com TTL para as respostas de /api/anexos.

As entradas expiram de forma preguiçosa: uma entrada vencida só é removida
quando é lida (ou quando o limite de entradas exige espaço).
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Uma resposta cacheada."""
    key: str
    data: Any
    expires_at: float


class ResponseCache:
    """Mapa chave -> resposta com expiração por TTL."""

    def __init__(
        self,
        ttl_seconds: float = 20.0,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            ttl_seconds: Tempo de vida padrão de cada entrada
            max_entries: Limite de entradas (None ou 0 = sem limite)
            clock: Relógio monotônico (injetável para testes)
        """
        self.ttl = ttl_seconds
        self.max_entries = max_entries or None
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self.metrics = {"hits": 0, "misses": 0, "expired": 0}

    @staticmethod
    def make_key(cpf: str, deep_mode: str) -> str:
        return f"{cpf}|{deep_mode}"

    def get(self, key: str) -> Optional[Any]:
        """Retorna o dado cacheado ou None (miss ou expirado)."""
        entry = self._entries.get(key)
        if entry is None:
            self.metrics["misses"] += 1
            return None

        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self.metrics["expired"] += 1
            self.metrics["misses"] += 1
            logger.debug(f"Cache expirado para {key}")
            return None

        self.metrics["hits"] += 1
        return entry.data

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        """Armazena um dado com o TTL informado (ou o padrão)."""
        ttl = self.ttl if ttl is None else ttl
        self._entries.pop(key, None)

        if self.max_entries and len(self._entries) >= self.max_entries:
            self._make_room()

        self._entries[key] = CacheEntry(key=key, data=data, expires_at=self._clock() + ttl)

    def _make_room(self) -> None:
        now = self._clock()
        for key in [k for k, e in self._entries.items() if now >= e.expires_at]:
            del self._entries[key]

        # dicts preservam ordem de inserção: a primeira chave é a mais antiga
        while len(self._entries) >= self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
