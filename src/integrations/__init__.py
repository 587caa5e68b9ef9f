"""
Módulo de integraciones con APIs externas.
"""
from .pipefy_client import (
    PipefyClient,
    PipefyAPIError,
    PipefyGraphQLError,
    PipefyTimeoutError,
    paginate
)

__all__ = [
    "PipefyClient",
    "PipefyAPIError",
    "PipefyGraphQLError",
    "PipefyTimeoutError",
    "paginate"
]
