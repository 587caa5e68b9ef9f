"""
Sistema centralizado de manejo de errores para la API de Pipefy.
Proporciona clasificación y logging estructurado de fallos upstream.
No hay reintentos: un fallo se registra y se propaga al llamador.
"""

import asyncio
import json
import logging
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field
from functools import wraps
import httpx

# Configurar logger específico para errores de API
logger = logging.getLogger(__name__)


class APIErrorSeverity(Enum):
    """Niveles de severidad para errores de API."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class APIErrorType(Enum):
    """Tipos de errores de API."""
    TIMEOUT = "timeout"
    CONNECTION_ERROR = "connection_error"
    HTTP_ERROR = "http_error"
    AUTHENTICATION_ERROR = "authentication_error"
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    GRAPHQL_ERROR = "graphql_error"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN_ERROR = "unknown_error"


@dataclass
class APIError:
    """Estructura para representar errores de API."""
    api_name: str
    error_type: APIErrorType
    severity: APIErrorSeverity
    message: str
    status_code: Optional[int] = None
    response_body: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    context: Dict[str, Any] = field(default_factory=dict)


class APIErrorHandler:
    """Manejador centralizado de errores para APIs externas."""

    def __init__(self, max_history: int = 1000):
        """Inicializa el manejador de errores."""
        self.error_history: List[APIError] = []
        self.max_history = max_history
        self.success_count: Dict[str, int] = {}

    def classify_error(
        self,
        exception: Exception,
        api_name: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None
    ) -> APIError:
        """
        Clasifica un error y determina su tipo y severidad.

        Args:
            exception: La excepción capturada
            api_name: Nombre de la API que falló
            status_code: Código de estado HTTP (si aplica)
            response_body: Cuerpo de la respuesta (si aplica)

        Returns:
            APIError clasificado
        """
        error_type = APIErrorType.UNKNOWN_ERROR
        severity = APIErrorSeverity.MEDIUM
        message = str(exception) or exception.__class__.__name__

        if status_code is None:
            status_code = getattr(exception, "status_code", None)

        # PipefyClient encadena la excepción de httpx con "raise ... from"
        cause = exception.__cause__

        # Clasificar por tipo de excepción
        if isinstance(exception, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
            error_type = APIErrorType.TIMEOUT

        elif isinstance(exception, (httpx.ConnectError, ConnectionError)) or isinstance(cause, httpx.ConnectError):
            error_type = APIErrorType.CONNECTION_ERROR
            severity = APIErrorSeverity.HIGH

        elif getattr(exception, "graphql_errors", None):
            error_type = APIErrorType.GRAPHQL_ERROR
            severity = APIErrorSeverity.LOW

        elif isinstance(cause, (json.JSONDecodeError, UnicodeDecodeError)):
            error_type = APIErrorType.INVALID_RESPONSE
            severity = APIErrorSeverity.HIGH

        elif isinstance(exception, httpx.HTTPStatusError) or status_code:
            error_type = APIErrorType.HTTP_ERROR

            # Clasificar por código de estado
            if status_code:
                if status_code == 401:
                    error_type = APIErrorType.AUTHENTICATION_ERROR
                    severity = APIErrorSeverity.HIGH
                elif status_code == 429:
                    error_type = APIErrorType.RATE_LIMIT
                elif 400 <= status_code < 500:
                    error_type = APIErrorType.CLIENT_ERROR
                    severity = APIErrorSeverity.LOW
                elif 500 <= status_code < 600:
                    error_type = APIErrorType.SERVER_ERROR
                    severity = APIErrorSeverity.HIGH

        return APIError(
            api_name=api_name,
            error_type=error_type,
            severity=severity,
            message=message,
            status_code=status_code,
            response_body=response_body[:500] if response_body else None  # Limitar tamaño
        )

    def log_error(self, error: APIError, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Registra un error en los logs con el nivel apropiado.

        Args:
            error: El error a registrar
            context: Contexto adicional
        """
        if context:
            error.context.update(context)

        self.error_history.append(error)
        if len(self.error_history) > self.max_history:
            self.error_history = self.error_history[-self.max_history:]

        # Log estructurado
        log_data = {
            "api_name": error.api_name,
            "error_type": error.error_type.value,
            "severity": error.severity.value,
            "error_message": error.message,
            "status_code": error.status_code,
            "timestamp": error.timestamp.isoformat(),
            "context": error.context
        }

        if error.severity == APIErrorSeverity.HIGH:
            logger.error(f"API Error - {error.api_name}: {error.message}", extra=log_data)
        elif error.severity == APIErrorSeverity.MEDIUM:
            logger.warning(f"API Error - {error.api_name}: {error.message}", extra=log_data)
        else:
            logger.info(f"API Error - {error.api_name}: {error.message}", extra=log_data)

    def log_success(self, api_name: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Registra una operación exitosa.

        Args:
            api_name: Nombre de la API
            context: Contexto adicional
        """
        self.success_count[api_name] = self.success_count.get(api_name, 0) + 1

        if context:
            logger.debug(f"API Success - {api_name}", extra=context)

    def get_error_stats(self, api_name: Optional[str] = None, hours: int = 24) -> Dict[str, Any]:
        """
        Obtiene estadísticas de errores y de llamadas exitosas.

        Args:
            api_name: Filtrar por API específica
            hours: Horas hacia atrás para analizar los errores

        Returns:
            Totales de errores por API, tipo y severidad, más los éxitos por API
        """
        cutoff_time = datetime.now() - timedelta(hours=hours)

        errors = [
            e for e in self.error_history
            if e.timestamp > cutoff_time and (not api_name or e.api_name == api_name)
        ]
        successes = {
            name: count for name, count in self.success_count.items()
            if not api_name or name == api_name
        }

        apis: Dict[str, int] = {}
        error_types: Dict[str, int] = {}
        severities: Dict[str, int] = {}
        for error in errors:
            apis[error.api_name] = apis.get(error.api_name, 0) + 1
            error_types[error.error_type.value] = error_types.get(error.error_type.value, 0) + 1
            severities[error.severity.value] = severities.get(error.severity.value, 0) + 1

        return {
            "total_errors": len(errors),
            "total_successes": sum(successes.values()),
            "apis": apis,
            "successes": successes,
            "error_types": error_types,
            "severities": severities
        }


def with_error_handling(api_name: str, context: Optional[Dict[str, Any]] = None):
    """
    Decorador que registra éxito/fallo de llamadas a APIs externas.

    La excepción original siempre se relanza; no hay reintentos.

    Args:
        api_name: Nombre de la API
        context: Contexto adicional para logging
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            error_handler = get_error_handler()
            start_time = time.time()

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                response_time = time.time() - start_time

                # Extraer información de la respuesta si está disponible
                status_code = None
                response_body = None
                response = getattr(e, "response", None)
                if isinstance(response, httpx.Response):
                    status_code = response.status_code
                    response_body = response.text

                error = error_handler.classify_error(e, api_name, status_code, response_body)
                error_handler.log_error(
                    error,
                    {**(context or {}), "response_time": response_time}
                )
                raise

            error_handler.log_success(
                api_name,
                {**(context or {}), "response_time": time.time() - start_time}
            )
            return result

        return async_wrapper

    return decorator


# Instancia global del manejador de errores
_error_handler: Optional[APIErrorHandler] = None


def get_error_handler() -> APIErrorHandler:
    """Obtiene la instancia global del manejador de errores."""
    global _error_handler
    if _error_handler is None:
        _error_handler = APIErrorHandler()
    return _error_handler


def reset_error_handler() -> None:
    """Resetea el manejador de errores (útil para tests)."""
    global _error_handler
    _error_handler = None
