from __future__ import annotations
from datetime import datetime
from typing import Optional, List
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.db.models import AgendamentoNotificacao, StatusAgendamento


class AgendamentoNotificacaoRepository:
    """Repository for AgendamentoNotificacao (scheduled notification) records."""

    async def save(self, session: AsyncSession, entity: AgendamentoNotificacao) -> AgendamentoNotificacao:
        session.add(entity)
        await session.flush()
        return entity

    async def get_by_id(self, session: AsyncSession, agendamento_id: int) -> Optional[AgendamentoNotificacao]:
        stmt = select(AgendamentoNotificacao).where(AgendamentoNotificacao.id == agendamento_id)
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def list_prontos(self, session: AsyncSession, agora: datetime, limit: int = 100) -> List[AgendamentoNotificacao]:
        """Scheduled rows due at `agora` and not past their expiration date."""
        stmt = (
            select(AgendamentoNotificacao)
            .where(
                AgendamentoNotificacao.status == StatusAgendamento.AGENDADA,
                AgendamentoNotificacao.data_agendamento <= agora,
                or_(
                    AgendamentoNotificacao.data_expiracao.is_(None),
                    AgendamentoNotificacao.data_expiracao >= agora,
                ),
            )
            .order_by(AgendamentoNotificacao.data_agendamento, AgendamentoNotificacao.id)
            .limit(limit)
        )
        res = await session.execute(stmt)
        return list(res.scalars().all())

    async def list_expiraveis(self, session: AsyncSession, agora: datetime) -> List[AgendamentoNotificacao]:
        stmt = select(AgendamentoNotificacao).where(
            AgendamentoNotificacao.status.in_([
                StatusAgendamento.AGENDADA,
                StatusAgendamento.PROCESSANDO,
                StatusAgendamento.FALHOU,
            ]),
            AgendamentoNotificacao.data_expiracao.is_not(None),
            AgendamentoNotificacao.data_expiracao < agora,
        )
        res = await session.execute(stmt)
        return list(res.scalars().all())
