from __future__ import annotations
from typing import List, TypeVar
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.db.models import HistoricoConcessao, HistoricoPagamento, HistoricoSolicitacao

H = TypeVar("H", HistoricoConcessao, HistoricoPagamento, HistoricoSolicitacao)


class HistoricoRepository:
    """
    Append-only access to the history tables.

    No update or delete methods; the models refuse both at flush time.
    """

    async def append(self, session: AsyncSession, entry: H) -> H:
        session.add(entry)
        await session.flush()
        return entry

    async def list_by_concessao(self, session: AsyncSession, concessao_id: int) -> List[HistoricoConcessao]:
        stmt = (
            select(HistoricoConcessao)
            .where(HistoricoConcessao.concessao_id == concessao_id)
            .order_by(HistoricoConcessao.criado_em, HistoricoConcessao.id)
        )
        res = await session.execute(stmt)
        return list(res.scalars().all())

    async def list_by_pagamento(self, session: AsyncSession, pagamento_id: int) -> List[HistoricoPagamento]:
        stmt = (
            select(HistoricoPagamento)
            .where(HistoricoPagamento.pagamento_id == pagamento_id)
            .order_by(HistoricoPagamento.criado_em, HistoricoPagamento.id)
        )
        res = await session.execute(stmt)
        return list(res.scalars().all())

    async def list_by_solicitacao(self, session: AsyncSession, solicitacao_id: int) -> List[HistoricoSolicitacao]:
        stmt = (
            select(HistoricoSolicitacao)
            .where(HistoricoSolicitacao.solicitacao_id == solicitacao_id)
            .order_by(HistoricoSolicitacao.criado_em, HistoricoSolicitacao.id)
        )
        res = await session.execute(stmt)
        return list(res.scalars().all())
