"""
Tests for notification schedules: the attempt ceiling on the model and
the retry/expiry flow driven by the service.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.services.notificacao import AgendamentoNotificacaoService
from semtas.core.exceptions import NotificacaoError, NotFoundError, ValidationError
from semtas.db.models import AgendamentoNotificacao, CanalNotificacao, StatusAgendamento

AGORA = datetime(2026, 10, 18, 9, 0, 0)


def _agendamento(**overrides) -> AgendamentoNotificacao:
    values = dict(
        destinatario_id=1,
        titulo="Pagamento liberado",
        canal=CanalNotificacao.SMS,
        data_agendamento=AGORA,
        tentativas=0,
        max_tentativas=3,
        status=StatusAgendamento.AGENDADA,
    )
    values.update(overrides)
    return AgendamentoNotificacao(**values)


@pytest.mark.unit
class TestAgendamentoModel:

    def test_three_attempts_expire_schedule(self):
        agendamento = _agendamento()
        for _ in range(3):
            agendamento.incrementar_tentativas()
        assert agendamento.tentativas == 3
        assert agendamento.status == StatusAgendamento.EXPIRADA

    def test_attempts_never_exceed_ceiling(self):
        agendamento = _agendamento(max_tentativas=2)
        agendamento.incrementar_tentativas()
        agendamento.incrementar_tentativas()
        with pytest.raises(NotificacaoError):
            agendamento.incrementar_tentativas()
        assert agendamento.tentativas == 2

    def test_ready_for_processing(self):
        agendamento = _agendamento(data_expiracao=AGORA + timedelta(hours=1))
        assert agendamento.is_pronto_para_processamento(AGORA)
        assert not agendamento.is_pronto_para_processamento(AGORA - timedelta(minutes=1))
        assert not agendamento.is_pronto_para_processamento(AGORA + timedelta(hours=2))

    def test_only_failed_can_be_rescheduled(self):
        agendamento = _agendamento()
        with pytest.raises(NotificacaoError):
            agendamento.reagendar(AGORA + timedelta(minutes=5))

        agendamento.marcar_como_falhou("gateway timeout")
        assert agendamento.status == StatusAgendamento.FALHOU
        agendamento.reagendar(AGORA + timedelta(minutes=5))
        assert agendamento.status == StatusAgendamento.AGENDADA

    def test_sent_schedule_cannot_be_cancelled(self):
        agendamento = _agendamento(status=StatusAgendamento.PROCESSANDO)
        agendamento.marcar_como_enviado("msg-123")
        assert agendamento.status == StatusAgendamento.ENVIADA
        assert agendamento.data_envio is not None
        with pytest.raises(NotificacaoError):
            agendamento.cancelar()


@pytest.mark.unit
class TestAgendamentoService:

    async def test_schedule_validates_expiration(self, db_session: AsyncSession):
        with pytest.raises(ValidationError):
            await AgendamentoNotificacaoService().agendar(
                db_session, 1, "Aviso", AGORA, data_expiracao=AGORA - timedelta(minutes=1)
            )

    async def test_schedule_unknown_concession(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await AgendamentoNotificacaoService().agendar(db_session, 1, "Aviso", AGORA, concessao_id=9999)

    async def test_failures_retry_then_expire(self, db_session: AsyncSession):
        svc = AgendamentoNotificacaoService()
        agendamento = await svc.agendar(db_session, 1, "Pagamento liberado", AGORA, max_tentativas=3)

        await svc.iniciar_processamento(db_session, agendamento.id)
        await svc.registrar_falha(db_session, agendamento.id, "gateway timeout", agora=AGORA)
        assert agendamento.status == StatusAgendamento.AGENDADA
        assert agendamento.tentativas == 1
        assert agendamento.data_agendamento == AGORA + timedelta(minutes=5)
        assert agendamento.ultimo_erro == "gateway timeout"

        await svc.iniciar_processamento(db_session, agendamento.id)
        await svc.registrar_falha(db_session, agendamento.id, "gateway timeout", agora=AGORA)
        assert agendamento.data_agendamento == AGORA + timedelta(minutes=10)

        await svc.iniciar_processamento(db_session, agendamento.id)
        await svc.registrar_falha(db_session, agendamento.id, "gateway timeout", agora=AGORA)
        assert agendamento.status == StatusAgendamento.EXPIRADA
        assert agendamento.tentativas == 3

        with pytest.raises(NotificacaoError):
            await svc.iniciar_processamento(db_session, agendamento.id)

    async def test_ready_list_and_send(self, db_session: AsyncSession):
        svc = AgendamentoNotificacaoService()
        pronto = await svc.agendar(db_session, 1, "Agora", AGORA - timedelta(minutes=1))
        await svc.agendar(db_session, 2, "Depois", AGORA + timedelta(hours=1))

        prontos = await svc.listar_prontos(db_session, agora=AGORA)
        assert [a.id for a in prontos] == [pronto.id]

        await svc.iniciar_processamento(db_session, pronto.id)
        await svc.registrar_envio(db_session, pronto.id, "msg-42")
        assert pronto.status == StatusAgendamento.ENVIADA
        assert pronto.notificacao_id == "msg-42"

    async def test_expire_overdue_schedules(self, db_session: AsyncSession):
        svc = AgendamentoNotificacaoService()
        vencido = await svc.agendar(
            db_session, 1, "Vencido", AGORA - timedelta(days=2), data_expiracao=AGORA - timedelta(days=1)
        )
        valido = await svc.agendar(db_session, 1, "Valido", AGORA, data_expiracao=AGORA + timedelta(days=1))

        assert await svc.expirar_vencidos(db_session, agora=AGORA) == 1
        assert vencido.status == StatusAgendamento.EXPIRADA
        assert valido.status == StatusAgendamento.AGENDADA
