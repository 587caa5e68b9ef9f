"""
Configuração do serviço.
"""
from .settings import Settings, ConfigurationError, settings

__all__ = [
    "Settings",
    "ConfigurationError",
    "settings"
]
