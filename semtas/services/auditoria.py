"""
Audit log collaborator.
Consumes status-change facts from the outbox and writes LogAuditoria rows.
"""

from __future__ import annotations
import logging
from typing import Any
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.core.events import EventDispatcher
from semtas.db.event_models import EventType, OutboxEvent
from semtas.db.models import LogAuditoria

logger = logging.getLogger(__name__)

CAMPOS_CPF = frozenset({"cpf", "beneficiario_cpf"})


def mascarar_cpf(cpf: str) -> str:
    """'52998224725' -> '***.982.247-**'"""
    if str(cpf).startswith("***"):
        return str(cpf)
    digits = "".join(ch for ch in str(cpf) if ch.isdigit())
    if len(digits) != 11:
        return "***"
    return f"***.{digits[3:6]}.{digits[6:9]}-**"


def mascarar_dados(dados: Any) -> Any:
    """Return a copy of `dados` with every CPF field masked (LGPD)."""
    if isinstance(dados, dict):
        return {
            k: mascarar_cpf(v) if k in CAMPOS_CPF and v else mascarar_dados(v)
            for k, v in dados.items()
        }
    if isinstance(dados, list):
        return [mascarar_dados(v) for v in dados]
    return dados


async def registrar_auditoria(session: AsyncSession, event: OutboxEvent) -> None:
    """Write one audit row for a status-change fact; replays of the same event are ignored."""
    existing = await session.execute(select(LogAuditoria.id).where(LogAuditoria.evento_id == event.event_id))
    if existing.scalar_one_or_none() is not None:
        return

    payload = mascarar_dados(event.payload or {})
    status_anterior = payload.pop("status_anterior", None)
    status_novo = payload.pop("status_novo", None)
    motivo = payload.pop("motivo", None)

    entidade_id = payload.pop("entidade_id", None)
    log = LogAuditoria(
        evento_id=event.event_id,
        usuario_id=event.usuario_id,
        acao=event.event_type,
        tabela_afetada=payload.pop("tipo_entidade", event.aggregate_type),
        registro_afetado=int(entidade_id) if entidade_id is not None else int(event.aggregate_id),
        dados_anteriores={"status": status_anterior} if status_anterior else None,
        dados_novos={"status": status_novo, **payload},
        data_hora=event.occurred_at,
        detalhes_adicionais=motivo,
    )
    session.add(log)
    await session.flush()
    logger.debug(f"Audit row written for event {event.event_id}")


def registrar_handlers_auditoria(dispatcher: EventDispatcher) -> None:
    for event_type in EventType:
        dispatcher.register_handler(event_type.value, registrar_auditoria)
