"""
Unit tests for the concession, payment and request transition tables.
"""

from datetime import date, datetime

import pytest

from semtas.core.concessao_workflow import ConcessaoWorkflowEngine
from semtas.core.pagamento_workflow import PagamentoWorkflowEngine
from semtas.core.solicitacao_workflow import SolicitacaoWorkflowEngine
from semtas.core.exceptions import TransicaoInvalidaError, ValidationError
from semtas.db.models import Pagamento, StatusConcessao, StatusPagamento, StatusSolicitacao


@pytest.mark.unit
class TestConcessaoWorkflow:

    def setup_method(self):
        self.engine = ConcessaoWorkflowEngine()

    @pytest.mark.parametrize("origem,destinos", [
        (StatusConcessao.APTO, {StatusConcessao.ATIVO, StatusConcessao.SUSPENSO, StatusConcessao.BLOQUEADO,
                                StatusConcessao.CESSADO, StatusConcessao.CANCELADO}),
        (StatusConcessao.ATIVO, {StatusConcessao.SUSPENSO, StatusConcessao.BLOQUEADO,
                                 StatusConcessao.CESSADO, StatusConcessao.CANCELADO}),
        (StatusConcessao.SUSPENSO, {StatusConcessao.ATIVO, StatusConcessao.BLOQUEADO,
                                    StatusConcessao.CESSADO, StatusConcessao.CANCELADO}),
        (StatusConcessao.BLOQUEADO, {StatusConcessao.ATIVO, StatusConcessao.CESSADO, StatusConcessao.CANCELADO}),
        (StatusConcessao.CESSADO, set()),
        (StatusConcessao.CANCELADO, set()),
    ])
    def test_transition_table(self, origem, destinos):
        assert set(self.engine.get_valid_transitions(origem)) == destinos

    @pytest.mark.parametrize("destino", list(StatusConcessao))
    def test_cessado_accepts_nothing(self, destino):
        with pytest.raises(TransicaoInvalidaError):
            self.engine.validate_transition(StatusConcessao.CESSADO, destino, "qualquer motivo")

    def test_same_status_rejected(self):
        with pytest.raises(TransicaoInvalidaError):
            self.engine.validate_transition(StatusConcessao.ATIVO, StatusConcessao.ATIVO, "motivo")

    def test_activation_needs_no_reason(self):
        t = self.engine.validate_transition(StatusConcessao.APTO, StatusConcessao.ATIVO)
        assert t.operation == "ativar"

    def test_suspension_requires_reason(self):
        with pytest.raises(ValidationError):
            self.engine.validate_transition(StatusConcessao.ATIVO, StatusConcessao.SUSPENSO, "   ")

    def test_operation_names(self):
        assert self.engine.validate_transition(
            StatusConcessao.BLOQUEADO, StatusConcessao.ATIVO, "ok").operation == "desbloquear"
        assert self.engine.validate_transition(
            StatusConcessao.SUSPENSO, StatusConcessao.ATIVO, "ok").operation == "reativar"


@pytest.mark.unit
class TestPagamentoWorkflow:

    def setup_method(self):
        self.engine = PagamentoWorkflowEngine()

    def test_terminal_statuses_have_no_exit(self):
        for status in (StatusPagamento.PAGO, StatusPagamento.CANCELADO):
            assert self.engine.get_valid_transitions(status) == []

    def test_liberado_only_goes_to_pago(self):
        assert self.engine.get_valid_transitions(StatusPagamento.LIBERADO) == [StatusPagamento.PAGO]

    def test_overdue_cycle(self):
        self.engine.validate_transition(StatusPagamento.PENDENTE, StatusPagamento.VENCIDO)
        self.engine.validate_transition(StatusPagamento.VENCIDO, StatusPagamento.REGULARIZADO)
        self.engine.validate_transition(StatusPagamento.REGULARIZADO, StatusPagamento.PROCESSADO)

    def test_regularized_payment_can_be_cancelled(self):
        assert self.engine.get_valid_transitions(StatusPagamento.REGULARIZADO) == [
            StatusPagamento.PROCESSADO, StatusPagamento.CANCELADO,
        ]

    def test_pendente_cannot_be_paid_directly(self):
        with pytest.raises(TransicaoInvalidaError):
            self.engine.validate_transition(StatusPagamento.PENDENTE, StatusPagamento.PAGO)

    def test_release_and_payment_require_previous_installment(self):
        assert self.engine.validate_transition(
            StatusPagamento.PROCESSADO, StatusPagamento.LIBERADO).requires_previous_settled
        assert self.engine.validate_transition(
            StatusPagamento.PROCESSADO, StatusPagamento.PAGO).requires_previous_settled
        assert not self.engine.validate_transition(
            StatusPagamento.LIBERADO, StatusPagamento.PAGO).requires_previous_settled

    def test_apply_stamps_date(self):
        pagamento = Pagamento(status=StatusPagamento.PROCESSADO)
        quando = datetime(2026, 3, 10, 12, 0)
        t = self.engine.validate_transition(StatusPagamento.PROCESSADO, StatusPagamento.LIBERADO)
        self.engine.apply(pagamento, t, quando)
        assert pagamento.status == StatusPagamento.LIBERADO
        assert pagamento.data_liberacao == quando

    def test_due_dates_are_monthly_and_month_end_safe(self):
        assert PagamentoWorkflowEngine.due_dates(date(2026, 1, 31), 3) == [
            date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31),
        ]


@pytest.mark.unit
class TestSolicitacaoWorkflow:

    def test_analysis_paths(self):
        engine = SolicitacaoWorkflowEngine()
        engine.validate_transition(StatusSolicitacao.PENDENTE, StatusSolicitacao.EM_ANALISE)
        engine.validate_transition(StatusSolicitacao.EM_ANALISE, StatusSolicitacao.APROVADA)
        engine.validate_transition(StatusSolicitacao.EM_ANALISE, StatusSolicitacao.PENDENTE)

    def test_approval_requires_analysis(self):
        with pytest.raises(TransicaoInvalidaError):
            SolicitacaoWorkflowEngine().validate_transition(StatusSolicitacao.PENDENTE, StatusSolicitacao.APROVADA)
