"""
Resolução de CPF para o registro do cliente na tabela de referência.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from src.integrations.pipefy_client import PipefyClient, paginate, PAGE_SIZE, MAX_PAGES

logger = logging.getLogger(__name__)


def only_digits(value: Optional[str]) -> str:
    """Remove tudo que não for dígito."""
    return "".join(filter(str.isdigit, value or ""))


@dataclass
class ClienteRecord:
    """Registro da tabela de clientes."""
    id: str
    title: Optional[str]

    @classmethod
    def from_node(cls, node: Dict[str, Any]) -> "ClienteRecord":
        return cls(id=str(node.get("id")), title=node.get("title"))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title}


class ClienteResolver:
    """Localiza o cliente de um CPF, primeira estratégia que casar vence."""

    def __init__(
        self,
        client: PipefyClient,
        table_id: str,
        cpf_field_id: Optional[str] = None,
        page_size: int = PAGE_SIZE,
        max_pages: int = MAX_PAGES
    ):
        self.client = client
        self.table_id = table_id
        self.cpf_field_id = cpf_field_id or None
        self.page_size = page_size
        self.max_pages = max_pages

    async def resolve(self, cpf_input: str) -> Optional[ClienteRecord]:
        """
        Resolve o CPF para um cliente.

        1. busca exata pelo campo de CPF com o valor informado;
        2. se só os dígitos diferirem do valor, repete a busca com os dígitos;
        3. varre a tabela comparando o título (exato, depois só dígitos).

        Returns:
            ClienteRecord ou None se não encontrado
        """
        raw = (cpf_input or "").strip()
        digits = only_digits(raw)

        if self.cpf_field_id:
            record = await self._find_by_field(raw)
            if record:
                logger.info(f"Cliente {record.id} encontrado pelo campo {self.cpf_field_id}")
                return record

            if digits and digits != raw:
                record = await self._find_by_field(digits)
                if record:
                    logger.info(f"Cliente {record.id} encontrado pelo CPF normalizado")
                    return record

        record = await self._scan_table(raw, digits)
        if record:
            logger.info(f"Cliente {record.id} encontrado na varredura da tabela")
        else:
            logger.info(f"Nenhum cliente encontrado para CPF {raw}")
        return record

    async def _find_by_field(self, value: str) -> Optional[ClienteRecord]:
        if not value:
            return None
        nodes = await self.client.find_records(self.table_id, self.cpf_field_id, value)
        return ClienteRecord.from_node(nodes[0]) if nodes else None

    async def _scan_table(self, raw: str, digits: str) -> Optional[ClienteRecord]:
        async def fetch_page(first, after):
            return await self.client.table_records_page(self.table_id, first, after)

        async for node in paginate(fetch_page, self.page_size, self.max_pages):
            title = (node.get("title") or "").strip()
            if raw and title == raw:
                return ClienteRecord.from_node(node)
            if digits and only_digits(title) == digits:
                return ClienteRecord.from_node(node)

        return None
