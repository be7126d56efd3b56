"""
Tests for installment creation and the payment workflow service.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.services.pagamento import PagamentoService
from semtas.core.exceptions import (
    ConflictError, PagamentoError, TransicaoInvalidaError, ValidationError,
)
from semtas.db.models import StatusConcessao, StatusPagamento, TipoEventoHistorico


@pytest.mark.unit
class TestPagamentoCreation:

    async def test_create_installment(self, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session, StatusConcessao.ATIVO)
        svc = PagamentoService()

        pagamento = await svc.criar(db_session, concessao.id, "150.50", numero_parcela=1, total_parcelas=3, usuario_id=5)

        assert pagamento.status == StatusPagamento.PENDENTE
        assert pagamento.valor == Decimal("150.50")
        assert pagamento.solicitacao_id == concessao.solicitacao_id

        historico = await svc.listar_historico(db_session, pagamento.id)
        assert len(historico) == 1
        assert historico[0].tipo_evento == TipoEventoHistorico.CRIACAO
        assert historico[0].status_anterior is None

    @pytest.mark.parametrize("status", [StatusConcessao.CESSADO, StatusConcessao.CANCELADO])
    async def test_terminal_concession_rejects_payments(self, db_session: AsyncSession, test_factory, status):
        concessao = await test_factory.create_concessao(db_session, status)
        with pytest.raises(PagamentoError):
            await PagamentoService().criar(db_session, concessao.id, "100.00")

    async def test_amount_with_three_decimals_rejected(self, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session)
        with pytest.raises(ValidationError):
            await PagamentoService().criar(db_session, concessao.id, 150.555)

    @pytest.mark.parametrize("valor", ["1E+30", "123456789012.00"])
    async def test_amount_beyond_column_precision_rejected(self, db_session: AsyncSession, test_factory, valor):
        concessao = await test_factory.create_concessao(db_session)
        with pytest.raises(ValidationError):
            await PagamentoService().criar(db_session, concessao.id, valor)

    async def test_installment_number_beyond_total_rejected(self, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session)
        with pytest.raises(ValidationError):
            await PagamentoService().criar(db_session, concessao.id, "100.00", numero_parcela=3, total_parcelas=2)

    async def test_duplicate_installment_number(self, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session)
        svc = PagamentoService()
        await svc.criar(db_session, concessao.id, "100.00", numero_parcela=1, total_parcelas=2)
        with pytest.raises(ConflictError):
            await svc.criar(db_session, concessao.id, "100.00", numero_parcela=1, total_parcelas=2)

    async def test_generate_monthly_installments(self, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session)
        svc = PagamentoService()

        parcelas = await svc.gerar_parcelas(db_session, concessao.id, "200.00", 3, primeiro_vencimento=date(2026, 1, 31))

        assert [p.numero_parcela for p in parcelas] == [1, 2, 3]
        assert [p.data_vencimento for p in parcelas] == [date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31)]
        assert all(p.total_parcelas == 3 for p in parcelas)

        # resuming keeps existing installments
        again = await svc.gerar_parcelas(db_session, concessao.id, "200.00", 3, primeiro_vencimento=date(2026, 1, 31))
        assert [p.id for p in again] == [p.id for p in parcelas]


@pytest.mark.unit
class TestPagamentoWorkflowService:

    async def test_release_requires_previous_installment(self, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session, StatusConcessao.ATIVO, data_inicio=date.today())
        primeira = await test_factory.create_pagamento(db_session, concessao, 1, 2, StatusPagamento.PROCESSADO)
        segunda = await test_factory.create_pagamento(db_session, concessao, 2, 2, StatusPagamento.PROCESSADO)
        svc = PagamentoService()

        with pytest.raises(PagamentoError):
            await svc.liberar(db_session, segunda.id)
        assert segunda.status == StatusPagamento.PROCESSADO

        await svc.liberar(db_session, primeira.id)
        await svc.liberar(db_session, segunda.id)
        assert segunda.status == StatusPagamento.LIBERADO
        assert segunda.data_liberacao is not None

    async def test_pending_cannot_be_paid(self, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session, StatusConcessao.ATIVO)
        pagamento = await test_factory.create_pagamento(db_session, concessao)
        with pytest.raises(TransicaoInvalidaError):
            await PagamentoService().pagar(db_session, pagamento.id)

    async def test_last_payment_closes_concession(self, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session, StatusConcessao.ATIVO, data_inicio=date.today())
        primeira = await test_factory.create_pagamento(db_session, concessao, 1, 2, StatusPagamento.PROCESSADO)
        segunda = await test_factory.create_pagamento(db_session, concessao, 2, 2, StatusPagamento.PROCESSADO)
        svc = PagamentoService()

        await svc.pagar(db_session, primeira.id, comprovante="PIX-001")
        assert concessao.status == StatusConcessao.ATIVO

        await svc.pagar(db_session, segunda.id, comprovante="PIX-002")
        assert concessao.status == StatusConcessao.CESSADO

        historico = await svc.listar_historico(db_session, segunda.id)
        assert historico[-1].dados_contexto == {"comprovante": "PIX-002"}
        assert svc.total_pago([primeira, segunda]) == Decimal("301.00")

    async def test_paying_first_of_three_keeps_concession_open(self, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session, StatusConcessao.ATIVO, data_inicio=date.today())
        svc = PagamentoService()

        primeira = await svc.criar(db_session, concessao.id, "100.00", numero_parcela=1, total_parcelas=3)
        await svc.processar(db_session, primeira.id)
        await svc.pagar(db_session, primeira.id)
        assert concessao.status == StatusConcessao.ATIVO

        segunda = await svc.criar(db_session, concessao.id, "100.00", numero_parcela=2, total_parcelas=3)
        assert segunda.status == StatusPagamento.PENDENTE

    async def test_overdue_sweep(self, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session, StatusConcessao.ATIVO)
        hoje = date(2026, 5, 10)
        atrasado = await test_factory.create_pagamento(
            db_session, concessao, 1, 3, data_vencimento=hoje - timedelta(days=1)
        )
        no_prazo = await test_factory.create_pagamento(db_session, concessao, 2, 3, data_vencimento=hoje)
        sem_data = await test_factory.create_pagamento(db_session, concessao, 3, 3)

        vencidos = await PagamentoService().marcar_vencidos(db_session, hoje)

        assert [p.id for p in vencidos] == [atrasado.id]
        assert atrasado.status == StatusPagamento.VENCIDO
        assert atrasado.data_vencido is not None
        assert no_prazo.status == StatusPagamento.PENDENTE
        assert sem_data.status == StatusPagamento.PENDENTE

    async def test_regularize_overdue_payment(self, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session, StatusConcessao.ATIVO)
        pagamento = await test_factory.create_pagamento(db_session, concessao, status=StatusPagamento.VENCIDO)
        svc = PagamentoService()

        with pytest.raises(ValidationError):
            await svc.regularizar(db_session, pagamento.id, "")

        await svc.regularizar(db_session, pagamento.id, "conta bancária corrigida", usuario_id=9)
        assert pagamento.status == StatusPagamento.REGULARIZADO
        assert pagamento.data_regularizacao is not None

        await svc.processar(db_session, pagamento.id)
        assert pagamento.status == StatusPagamento.PROCESSADO

        historico = await svc.listar_historico(db_session, pagamento.id)
        assert [h.status_novo for h in historico] == [StatusPagamento.REGULARIZADO, StatusPagamento.PROCESSADO]

    async def test_cancel_payment_records_cancellation(self, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session, StatusConcessao.ATIVO)
        pagamento = await test_factory.create_pagamento(db_session, concessao)

        await PagamentoService().cancelar(db_session, pagamento.id, "lançamento duplicado")

        historico = await PagamentoService().listar_historico(db_session, pagamento.id)
        assert pagamento.status == StatusPagamento.CANCELADO
        assert historico[-1].tipo_evento == TipoEventoHistorico.CANCELAMENTO


@pytest.mark.unit
async def test_repository_lists_installments_by_request(db_session: AsyncSession, test_factory):
    concessao = await test_factory.create_concessao(db_session)
    await test_factory.create_pagamento(db_session, concessao, 2, 2)
    await test_factory.create_pagamento(db_session, concessao, 1, 2)

    parcelas = await PagamentoService().repo.get_by_solicitacao_id(db_session, concessao.solicitacao_id)
    assert [p.numero_parcela for p in parcelas] == [1, 2]
