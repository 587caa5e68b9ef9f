#!/usr/bin/env python3
"""
Script de validação de ambiente para o Serviço de Anexos Pipefy.

Verifica se as variáveis de ambiente necessárias estão configuradas e se
o token consegue ler o pipe e a tabela de clientes configurados.
"""

import sys
import asyncio
from typing import List, Optional

from src.config.settings import Settings
from src.integrations.pipefy_client import PipefyClient, PipefyAPIError


class EnvironmentValidator:
    """Validador de configuração de ambiente."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings.from_env()
        self.errors: List[str] = []
        self.warnings: List[str] = []
        self.success_count = 0
        self.total_checks = 0

    def check_required_env_vars(self) -> bool:
        """Verifica as variáveis obrigatórias e avisa sobre as opcionais."""
        print("🔍 Verificando variáveis de ambiente...")

        for var in self.settings.validate_required_vars():
            self.errors.append(f"❌ {var} não configurado")

        self.total_checks += 3
        self.success_count += 3 - len(self.errors)

        if not self.settings.CPF_FIELD_ID:
            self.warnings.append("⚠️ CPF_FIELD_ID vazio: a busca usará apenas a varredura da tabela")
        if not self.settings.AIT_FIELD_ID:
            self.warnings.append("⚠️ AIT_FIELD_ID vazio: o AIT será localizado pelo label")

        return not self.errors

    async def check_pipefy_connection(self, client: Optional[PipefyClient] = None) -> bool:
        """Consulta o primeiro pipe e a tabela de clientes."""
        print("🔗 Testando conexão com o Pipefy...")
        own_client = client is None
        client = client or PipefyClient(
            api_url=self.settings.PIPEFY_API_URL,
            token=self.settings.PIPEFY_TOKEN,
            timeout=self.settings.graphql_timeout
        )

        ok = True
        try:
            for pipe_id in self.settings.PIPE_IDS[:1]:
                self.total_checks += 1
                pipe = await client.get_pipe(pipe_id)
                if pipe:
                    self.success_count += 1
                    print(f"   ✅ Pipe {pipe_id}: {pipe.get('name')}")
                else:
                    ok = False
                    self.errors.append(f"❌ Pipe {pipe_id} não encontrado")

            if self.settings.CLIENTES_TABLE_ID:
                self.total_checks += 1
                table = await client.get_table_fields(self.settings.CLIENTES_TABLE_ID)
                if table:
                    self.success_count += 1
                    print(f"   ✅ Tabela {table.get('id')}: {table.get('name')}")
                else:
                    ok = False
                    self.errors.append(f"❌ Tabela {self.settings.CLIENTES_TABLE_ID} não encontrada")
        except PipefyAPIError as e:
            self.errors.append(f"❌ Erro na API do Pipefy: {e}")
            ok = False
        finally:
            if own_client:
                await client.aclose()

        return ok

    def print_summary(self) -> None:
        print("\n" + "=" * 60)
        print(f"📊 {self.success_count}/{self.total_checks} verificações OK")
        for message in self.errors + self.warnings:
            print(f"   {message}")
        print("=" * 60)


async def main() -> int:
    validator = EnvironmentValidator()
    env_ok = validator.check_required_env_vars()
    api_ok = await validator.check_pipefy_connection() if env_ok else False
    validator.print_summary()
    return 0 if env_ok and api_ok else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
