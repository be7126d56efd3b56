from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.repositories.agendamento_notificacao import AgendamentoNotificacaoRepository
from semtas.repositories.concessao import ConcessaoRepository
from semtas.db.models import AgendamentoNotificacao, CanalNotificacao, StatusAgendamento
from semtas.db.event_models import EventType
from semtas.core.config import get_settings
from semtas.core.events import publish_status_alterado
from semtas.core.exceptions import ErrorHandler, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class AgendamentoNotificacaoService:
    """
    Notification schedules handed to the external sender.

    The sender polls `listar_prontos`, claims a row with `iniciar_processamento`
    and reports back through `registrar_envio` or `registrar_falha`.
    """

    def __init__(self) -> None:
        self.repo = AgendamentoNotificacaoRepository()
        self.concessao_repo = ConcessaoRepository()

    async def get_by_id(self, session: AsyncSession, agendamento_id: int) -> AgendamentoNotificacao:
        ErrorHandler.validate_positive_integer(agendamento_id, "agendamento_id")
        agendamento = await self.repo.get_by_id(session, agendamento_id)
        if not agendamento:
            raise NotFoundError(
                f"Notification schedule with ID {agendamento_id} not found",
                {"agendamento_id": agendamento_id}
            )
        return agendamento

    async def agendar(
        self,
        session: AsyncSession,
        destinatario_id: int,
        titulo: str,
        data_agendamento: datetime,
        canal: CanalNotificacao = CanalNotificacao.SISTEMA,
        conteudo: Optional[str] = None,
        concessao_id: Optional[int] = None,
        data_expiracao: Optional[datetime] = None,
        max_tentativas: Optional[int] = None,
    ) -> AgendamentoNotificacao:
        ErrorHandler.validate_positive_integer(destinatario_id, "destinatario_id")
        if not titulo or not titulo.strip():
            raise ValidationError("titulo is required", {"field": "titulo"})
        if data_expiracao and data_expiracao <= data_agendamento:
            raise ValidationError(
                "data_expiracao must be after data_agendamento",
                {"data_agendamento": data_agendamento.isoformat(), "data_expiracao": data_expiracao.isoformat()}
            )
        if max_tentativas is None:
            max_tentativas = get_settings().NOTIFICACAO_MAX_TENTATIVAS
        ErrorHandler.validate_positive_integer(max_tentativas, "max_tentativas")

        if concessao_id is not None and not await self.concessao_repo.get_by_id(session, concessao_id):
            raise NotFoundError(
                f"Concession with ID {concessao_id} not found",
                {"concessao_id": concessao_id}
            )

        agendamento = AgendamentoNotificacao(
            destinatario_id=destinatario_id,
            canal=canal,
            titulo=titulo.strip(),
            conteudo=conteudo,
            concessao_id=concessao_id,
            data_agendamento=data_agendamento,
            data_expiracao=data_expiracao,
            tentativas=0,
            max_tentativas=max_tentativas,
            status=StatusAgendamento.AGENDADA,
        )
        await self.repo.save(session, agendamento)
        logger.info(f"Scheduled notification {agendamento.id} for {destinatario_id} at {data_agendamento.isoformat()}")
        return agendamento

    async def listar_prontos(
        self,
        session: AsyncSession,
        agora: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AgendamentoNotificacao]:
        agora = agora or datetime.utcnow()
        candidatos = await self.repo.list_prontos(session, agora, limit)
        return [a for a in candidatos if a.is_pronto_para_processamento(agora)]

    async def _publicar(
        self,
        session: AsyncSession,
        agendamento: AgendamentoNotificacao,
        status_anterior: StatusAgendamento,
        motivo: Optional[str] = None,
    ) -> None:
        if status_anterior == agendamento.status:
            return
        await publish_status_alterado(
            session, EventType.AGENDAMENTO_STATUS_ALTERADO, "agendamento_notificacao", agendamento.id,
            status_anterior.value, agendamento.status.value, motivo=motivo,
            tentativas=agendamento.tentativas,
        )

    async def iniciar_processamento(self, session: AsyncSession, agendamento_id: int) -> AgendamentoNotificacao:
        agendamento = await self.get_by_id(session, agendamento_id)
        status_anterior = agendamento.status
        agendamento.iniciar_processamento()
        await self.repo.save(session, agendamento)
        await self._publicar(session, agendamento, status_anterior)
        return agendamento

    async def registrar_envio(
        self,
        session: AsyncSession,
        agendamento_id: int,
        notificacao_id: Optional[str] = None,
    ) -> AgendamentoNotificacao:
        agendamento = await self.get_by_id(session, agendamento_id)
        status_anterior = agendamento.status
        agendamento.marcar_como_enviado(notificacao_id)
        await self.repo.save(session, agendamento)
        await self._publicar(session, agendamento, status_anterior)
        logger.info(f"Notification {agendamento.id} sent (notificacao_id={notificacao_id})")
        return agendamento

    async def registrar_falha(
        self,
        session: AsyncSession,
        agendamento_id: int,
        motivo: str,
        agora: Optional[datetime] = None,
    ) -> AgendamentoNotificacao:
        """
        Record a failed send.

        While attempts remain the schedule goes back to AGENDADA with a linear
        backoff of NOTIFICACAO_RETRY_MINUTOS per attempt already made; the
        attempt that reaches the ceiling leaves it EXPIRADA.
        """
        motivo = ErrorHandler.validate_reason(motivo)
        agendamento = await self.get_by_id(session, agendamento_id)
        status_anterior = agendamento.status
        agendamento.marcar_como_falhou(motivo)

        if agendamento.status == StatusAgendamento.FALHOU:
            agora = agora or datetime.utcnow()
            atraso = timedelta(minutes=get_settings().NOTIFICACAO_RETRY_MINUTOS * agendamento.tentativas)
            agendamento.reagendar(agora + atraso)
            logger.warning(
                f"Notification {agendamento.id} failed (attempt {agendamento.tentativas}/"
                f"{agendamento.max_tentativas}), retry at {agendamento.data_agendamento.isoformat()}: {motivo}"
            )
        else:
            logger.error(f"Notification {agendamento.id} expired after {agendamento.tentativas} attempts: {motivo}")

        await self.repo.save(session, agendamento)
        await self._publicar(session, agendamento, status_anterior, motivo)
        return agendamento

    async def cancelar(self, session: AsyncSession, agendamento_id: int) -> AgendamentoNotificacao:
        agendamento = await self.get_by_id(session, agendamento_id)
        status_anterior = agendamento.status
        agendamento.cancelar()
        await self.repo.save(session, agendamento)
        await self._publicar(session, agendamento, status_anterior)
        return agendamento

    async def expirar_vencidos(self, session: AsyncSession, agora: Optional[datetime] = None) -> int:
        """Expire every open schedule whose data_expiracao has passed."""
        agora = agora or datetime.utcnow()
        expirados = 0
        for agendamento in await self.repo.list_expiraveis(session, agora):
            status_anterior = agendamento.status
            agendamento.expirar()
            await self.repo.save(session, agendamento)
            await self._publicar(session, agendamento, status_anterior, "Prazo de envio expirado")
            expirados += 1
        if expirados:
            logger.info(f"Expired {expirados} notification schedules")
        return expirados
