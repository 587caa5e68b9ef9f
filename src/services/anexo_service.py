"""
Extração do campo AIT e dos anexos de um card do Pipefy.

O anexo mais recente de um card é tratado como o "Comprovante Protocolo".
"""
import re
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Pattern, Union
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class Anexo:
    """Anexo derivado de um card."""
    filename: Optional[str]
    url: Optional[str]
    created_at: Optional[str]
    is_ait: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "url": self.url,
            "createdAt": self.created_at,
            "isAIT": self.is_ait
        }


@dataclass
class CardResult:
    """Resultado da extração de um card."""
    card_id: str
    title: Optional[str]
    pipe_id: Optional[str]
    ait: Optional[str]
    anexo_ait: Optional[Anexo]
    anexos: List[Anexo] = field(default_factory=list)

    @property
    def ultimo_anexo(self) -> Optional[Anexo]:
        return self.anexos[0] if self.anexos else None

    def to_dict(self) -> Dict[str, Any]:
        ultimo = self.ultimo_anexo.to_dict() if self.ultimo_anexo else None
        return {
            "cardId": self.card_id,
            "title": self.title,
            "pipeId": self.pipe_id,
            "ait": self.ait,
            "anexoAIT": self.anexo_ait.to_dict() if self.anexo_ait else None,
            "ultimoAnexo": ultimo,
            "protocolo": ultimo,
            "anexos": [anexo.to_dict() for anexo in self.anexos]
        }


class FieldMatcher:
    """
    Localiza o campo AIT de um card.

    Primeiro pelo id do campo configurado; se não houver, pelo primeiro
    campo cujo label casa com o padrão (case-insensitive).
    """

    def __init__(self, field_id: Optional[str] = None, label_pattern: Union[str, Pattern, None] = r"\bait\b"):
        self.field_id = field_id or None
        if isinstance(label_pattern, str):
            label_pattern = re.compile(label_pattern, re.IGNORECASE)
        self.label_pattern = label_pattern

    def find(self, fields: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        fields = [f for f in fields or [] if f]

        if self.field_id:
            for card_field in fields:
                if (card_field.get("field") or {}).get("id") == self.field_id:
                    return card_field

        if self.label_pattern is not None:
            for card_field in fields:
                label = (card_field.get("field") or {}).get("label") or card_field.get("name") or ""
                if self.label_pattern.search(label):
                    return card_field

        return None

    def value(self, fields: List[Dict[str, Any]]) -> Optional[str]:
        card_field = self.find(fields)
        if not card_field:
            return None
        value = card_field.get("value")
        if value is None:
            return None
        value = str(value).strip()
        return value or None


def filename_from_url(url: Optional[str]) -> Optional[str]:
    """Último segmento do path da URL, decodificado; None se não houver."""
    if not url:
        return None
    path = urlparse(url).path
    segment = path.rsplit("/", 1)[-1] if path else ""
    return unquote(segment) or None


def _parse_created_at(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"createdAt inválido ignorado: {value}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_anexos(attachments: List[Dict[str, Any]], ait: Optional[str] = None) -> List[Anexo]:
    """
    Monta a lista de anexos, do mais recente para o mais antigo.

    Anexos sem data vão para o final. Com um código AIT, marca os anexos
    cujo nome contém o código.
    """
    anexos = []
    for attachment in attachments or []:
        if not attachment:
            continue
        url = attachment.get("url")
        anexos.append(Anexo(
            filename=filename_from_url(url),
            url=url,
            created_at=attachment.get("createdAt")
        ))

    def sort_key(anexo: Anexo):
        parsed = _parse_created_at(anexo.created_at)
        return (parsed is not None, parsed or _EPOCH)

    anexos.sort(key=sort_key, reverse=True)

    if ait:
        needle = ait.lower()
        for anexo in anexos:
            anexo.is_ait = bool(anexo.filename) and needle in anexo.filename.lower()

    return anexos


def extract_card(card: Dict[str, Any], matcher: FieldMatcher, pipe_id: Optional[str] = None) -> CardResult:
    """Extrai AIT, anexo AIT e anexos de um card."""
    ait = matcher.value(card.get("fields") or [])
    anexos = build_anexos(card.get("attachments") or [], ait)
    anexo_ait = next((anexo for anexo in anexos if anexo.is_ait), None)

    return CardResult(
        card_id=str(card.get("id")),
        title=card.get("title"),
        pipe_id=str(pipe_id) if pipe_id is not None else None,
        ait=ait,
        anexo_ait=anexo_ait,
        anexos=anexos
    )
