from __future__ import annotations
from datetime import date
from typing import Optional, List, Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.db.models import Pagamento, StatusPagamento


class PagamentoRepository:
    """Repository for Pagamento (installment) operations."""

    async def save(self, session: AsyncSession, entity: Pagamento) -> Pagamento:
        session.add(entity)
        await session.flush()
        return entity

    async def get_by_id(self, session: AsyncSession, pagamento_id: int) -> Optional[Pagamento]:
        stmt = select(Pagamento).where(Pagamento.id == pagamento_id)
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def get_by_solicitacao_id(self, session: AsyncSession, solicitacao_id: int) -> List[Pagamento]:
        stmt = (
            select(Pagamento)
            .where(Pagamento.solicitacao_id == solicitacao_id)
            .order_by(Pagamento.concessao_id, Pagamento.numero_parcela)
        )
        res = await session.execute(stmt)
        return list(res.scalars().all())

    async def list_by_concessao(self, session: AsyncSession, concessao_id: int) -> List[Pagamento]:
        stmt = (
            select(Pagamento)
            .where(Pagamento.concessao_id == concessao_id)
            .order_by(Pagamento.numero_parcela)
        )
        res = await session.execute(stmt)
        return list(res.scalars().all())

    async def get_parcela(self, session: AsyncSession, concessao_id: int, numero_parcela: int) -> Optional[Pagamento]:
        stmt = select(Pagamento).where(
            Pagamento.concessao_id == concessao_id,
            Pagamento.numero_parcela == numero_parcela,
        )
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def list_vencidos_em(
        self,
        session: AsyncSession,
        hoje: date,
        status: Sequence[StatusPagamento] = (StatusPagamento.PENDENTE, StatusPagamento.PROCESSADO),
    ) -> List[Pagamento]:
        """Installments in one of `status` whose due date is before `hoje`."""
        stmt = (
            select(Pagamento)
            .where(
                Pagamento.status.in_(list(status)),
                Pagamento.data_vencimento.is_not(None),
                Pagamento.data_vencimento < hoje,
            )
            .order_by(Pagamento.data_vencimento, Pagamento.id)
        )
        res = await session.execute(stmt)
        return list(res.scalars().all())
