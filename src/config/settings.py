"""
Configuração e carga de variáveis de ambiente para o serviço de anexos.
"""
import os
import logging
from typing import List, Optional
from dotenv import load_dotenv

# Carregar variáveis de ambiente do .env
load_dotenv()

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Variável de configuração obrigatória ausente."""

    def __init__(self, variable: str, message: Optional[str] = None):
        self.variable = variable
        super().__init__(message or f"{variable} não configurado")


def _split_ids(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    """Configuração centralizada do serviço de anexos."""

    def __init__(self, env: Optional[dict] = None):
        get = (env if env is not None else os.environ).get

        # Pipefy
        self.PIPEFY_TOKEN: str = get("PIPEFY_TOKEN", "")
        self.PIPEFY_API_URL: str = get("PIPEFY_API_URL", "https://api.pipefy.com/graphql")

        # Tabela de clientes e campos
        self.CLIENTES_TABLE_ID: str = get("CLIENTES_TABLE_ID", "")
        self.CPF_FIELD_ID: str = get("CPF_FIELD_ID", "")
        self.CLIENTE_FIELD_ID: str = get("CLIENTE_FIELD_ID", "cliente")
        self.AIT_FIELD_ID: str = get("AIT_FIELD_ID", "")
        self.AIT_LABEL_PATTERN: str = get("AIT_LABEL_PATTERN", r"\bait\b")

        # Pipes onde os cards são buscados (separados por vírgula)
        self.PIPE_IDS: List[str] = _split_ids(get("PIPE_IDS", ""))

        # Timeouts e cache (em milissegundos)
        self.GRAPHQL_TIMEOUT_MS: int = int(get("GRAPHQL_TIMEOUT_MS", "15000"))
        self.CACHE_TTL_MS: int = int(get("CACHE_TTL_MS", "20000"))
        self.CACHE_MAX_ENTRIES: int = int(get("CACHE_MAX_ENTRIES", "0"))

        # Aplicação
        self.PORT: int = int(get("PORT", "3000"))
        self.HOST: str = get("HOST", "0.0.0.0")
        self.LOG_LEVEL: str = get("LOG_LEVEL", "INFO")

    @classmethod
    def from_env(cls, env: Optional[dict] = None) -> "Settings":
        """Cria uma nova instância (útil para testes)."""
        return cls(env)

    @property
    def graphql_timeout(self) -> float:
        return self.GRAPHQL_TIMEOUT_MS / 1000.0

    @property
    def cache_ttl(self) -> float:
        return self.CACHE_TTL_MS / 1000.0

    def require(self, name: str):
        """
        Retorna o valor de uma variável obrigatória.

        Raises:
            ConfigurationError: Se a variável estiver vazia
        """
        value = getattr(self, name, None)
        if not value:
            raise ConfigurationError(name)
        return value

    def validate_required_vars(self) -> List[str]:
        """
        Valida que as variáveis de ambiente requeridas estão configuradas.

        Returns:
            Lista de variáveis faltantes (vazia se todas estão configuradas)
        """
        required_vars = {
            "PIPEFY_TOKEN": self.PIPEFY_TOKEN,
            "CLIENTES_TABLE_ID": self.CLIENTES_TABLE_ID,
            "PIPE_IDS": self.PIPE_IDS,
        }

        return [var for var, value in required_vars.items() if not value]

    def get_pipefy_headers(self) -> dict:
        """Retorna os headers para as chamadas à API do Pipefy."""
        return {
            "Authorization": f"Bearer {self.PIPEFY_TOKEN}",
            "Content-Type": "application/json"
        }


# Instância global de configuração
settings = Settings()
