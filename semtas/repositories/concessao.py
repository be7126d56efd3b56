from __future__ import annotations
from typing import Optional, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.db.models import Concessao, StatusConcessao


class ConcessaoRepository:
    """Repository for Concessao operations. Soft-deleted rows are never returned."""

    def _base_query(self):
        return select(Concessao).where(Concessao.removido_em.is_(None))

    async def save(self, session: AsyncSession, entity: Concessao) -> Concessao:
        session.add(entity)
        await session.flush()
        return entity

    async def get_by_id(self, session: AsyncSession, concessao_id: int) -> Optional[Concessao]:
        stmt = self._base_query().where(Concessao.id == concessao_id)
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def get_by_solicitacao_id(self, session: AsyncSession, solicitacao_id: int) -> Optional[Concessao]:
        stmt = self._base_query().where(Concessao.solicitacao_id == solicitacao_id)
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def get_renovacao(self, session: AsyncSession, concessao_id: int) -> Optional[Concessao]:
        """Return the concession that renews `concessao_id`, if any."""
        stmt = self._base_query().where(Concessao.concessao_anterior_id == concessao_id)
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def list(
        self,
        session: AsyncSession,
        status: Optional[StatusConcessao] = None,
        determinacao_judicial: Optional[bool] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Concessao]:
        stmt = self._base_query()
        if status:
            stmt = stmt.where(Concessao.status == status)
        if determinacao_judicial is not None:
            stmt = stmt.where(Concessao.determinacao_judicial_flag == determinacao_judicial)
        stmt = stmt.order_by(Concessao.ordem_prioridade, Concessao.criado_em.desc()).limit(limit).offset(offset)
        res = await session.execute(stmt)
        return list(res.scalars().all())
