"""
Testes para o script de validação de ambiente.
"""
import pytest
from unittest.mock import Mock, AsyncMock

from src.config.settings import Settings
from src.integrations.pipefy_client import PipefyGraphQLError
from validate_env import EnvironmentValidator


def test_missing_vars_are_reported():
    validator = EnvironmentValidator(Settings.from_env({"PIPEFY_TOKEN": "tok"}))

    assert validator.check_required_env_vars() is False
    assert any("CLIENTES_TABLE_ID" in e for e in validator.errors)
    assert any("PIPE_IDS" in e for e in validator.errors)
    assert validator.success_count == 1


def test_complete_config(test_settings):
    validator = EnvironmentValidator(test_settings)

    assert validator.check_required_env_vars() is True
    assert any("AIT_FIELD_ID" in w for w in validator.warnings)


@pytest.mark.asyncio
async def test_pipefy_connection_ok(test_settings):
    client = Mock()
    client.get_pipe = AsyncMock(return_value={"id": "pipe_1", "name": "Protocolos"})
    client.get_table_fields = AsyncMock(return_value={"id": "table_1", "name": "Clientes"})
    validator = EnvironmentValidator(test_settings)

    assert await validator.check_pipefy_connection(client) is True
    assert validator.success_count == 2


@pytest.mark.asyncio
async def test_pipefy_connection_graphql_error(test_settings):
    client = Mock()
    client.get_pipe = AsyncMock(side_effect=PipefyGraphQLError([{"message": "Permission denied"}]))
    validator = EnvironmentValidator(test_settings)

    assert await validator.check_pipefy_connection(client) is False
    assert "Permission denied" in validator.errors[0]
