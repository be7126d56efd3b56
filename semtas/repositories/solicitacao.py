from __future__ import annotations
from typing import Optional, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.db.models import Solicitacao, StatusSolicitacao


class SolicitacaoRepository:
    """Repository for Solicitacao (benefit request) operations."""

    async def save(self, session: AsyncSession, entity: Solicitacao) -> Solicitacao:
        session.add(entity)
        await session.flush()
        return entity

    async def get_by_id(self, session: AsyncSession, solicitacao_id: int) -> Optional[Solicitacao]:
        stmt = select(Solicitacao).where(Solicitacao.id == solicitacao_id)
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def get_by_protocolo(self, session: AsyncSession, protocolo: str) -> Optional[Solicitacao]:
        stmt = select(Solicitacao).where(Solicitacao.protocolo == protocolo)
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def list(
        self,
        session: AsyncSession,
        status: Optional[StatusSolicitacao] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Solicitacao]:
        stmt = select(Solicitacao)
        if status:
            stmt = stmt.where(Solicitacao.status == status)
        stmt = stmt.order_by(Solicitacao.prioridade, Solicitacao.id).limit(limit).offset(offset)
        res = await session.execute(stmt)
        return list(res.scalars().all())
