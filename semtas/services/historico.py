from __future__ import annotations
import logging
from typing import Optional, Dict, Any, List
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.repositories.historico import HistoricoRepository
from semtas.db.models import (
    HistoricoConcessao, HistoricoPagamento, HistoricoSolicitacao,
    StatusConcessao, StatusPagamento, StatusSolicitacao, TipoEventoHistorico,
)

logger = logging.getLogger(__name__)


class HistoricoService:
    """Writes the append-only status history of concessions, payments and requests."""

    def __init__(self) -> None:
        self.repo = HistoricoRepository()

    async def registrar_concessao(
        self,
        session: AsyncSession,
        concessao_id: int,
        status_anterior: Optional[StatusConcessao],
        status_novo: StatusConcessao,
        usuario_id: Optional[int] = None,
        motivo: Optional[str] = None,
    ) -> HistoricoConcessao:
        entry = HistoricoConcessao(
            concessao_id=concessao_id,
            status_anterior=status_anterior,
            status_novo=status_novo,
            usuario_id=usuario_id,
            motivo=motivo,
        )
        await self.repo.append(session, entry)
        logger.debug(
            f"Historico concessao {concessao_id}: "
            f"{status_anterior.value if status_anterior else None} -> {status_novo.value}"
        )
        return entry

    async def registrar_pagamento(
        self,
        session: AsyncSession,
        pagamento_id: int,
        status_anterior: Optional[StatusPagamento],
        status_novo: StatusPagamento,
        usuario_id: Optional[int] = None,
        motivo: Optional[str] = None,
        tipo_evento: TipoEventoHistorico = TipoEventoHistorico.ALTERACAO_STATUS,
        dados_contexto: Optional[Dict[str, Any]] = None,
    ) -> HistoricoPagamento:
        entry = HistoricoPagamento(
            pagamento_id=pagamento_id,
            tipo_evento=tipo_evento,
            status_anterior=status_anterior,
            status_novo=status_novo,
            usuario_id=usuario_id,
            motivo=motivo,
            dados_contexto=dados_contexto,
        )
        return await self.repo.append(session, entry)

    async def registrar_solicitacao(
        self,
        session: AsyncSession,
        solicitacao_id: int,
        status_anterior: Optional[StatusSolicitacao],
        status_novo: StatusSolicitacao,
        usuario_id: Optional[int] = None,
        motivo: Optional[str] = None,
    ) -> HistoricoSolicitacao:
        entry = HistoricoSolicitacao(
            solicitacao_id=solicitacao_id,
            status_anterior=status_anterior,
            status_novo=status_novo,
            usuario_id=usuario_id,
            motivo=motivo,
        )
        return await self.repo.append(session, entry)

    async def listar_concessao(self, session: AsyncSession, concessao_id: int) -> List[HistoricoConcessao]:
        return await self.repo.list_by_concessao(session, concessao_id)

    async def listar_pagamento(self, session: AsyncSession, pagamento_id: int) -> List[HistoricoPagamento]:
        return await self.repo.list_by_pagamento(session, pagamento_id)

    async def listar_solicitacao(self, session: AsyncSession, solicitacao_id: int) -> List[HistoricoSolicitacao]:
        return await self.repo.list_by_solicitacao(session, solicitacao_id)
