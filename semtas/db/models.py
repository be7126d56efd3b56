# semtas/db/models.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean, CheckConstraint, Date, DateTime, Enum as SAEnum, ForeignKey, Integer,
    JSON, Numeric, String, Text, UniqueConstraint, event, text,
)
from sqlalchemy.orm import Mapped, mapped_column

from semtas.core.exceptions import HistoricoImutavelError, NotificacaoError
from semtas.db.base import Base

convention = {
    "ix": "ix__%(column_0_label)s",
    "uq": "uq__%(table_name)s__%(column_0_name)s",
    "ck": "ck__%(table_name)s__%(constraint_name)s",
    "fk": "fk__%(table_name)s__%(column_0_name)s__%(referred_table_name)s",
    "pk": "pk__%(table_name)s",
}

Base.metadata.naming_convention = convention


def _enum_column(enum_cls: type[Enum]) -> SAEnum:
    return SAEnum(enum_cls, native_enum=False, length=20, validate_strings=True)


class StatusSolicitacao(str, Enum):
    PENDENTE = "PENDENTE"
    EM_ANALISE = "EM_ANALISE"
    APROVADA = "APROVADA"
    INDEFERIDA = "INDEFERIDA"
    CANCELADA = "CANCELADA"


class TipoConcessao(str, Enum):
    ORIGINAL = "ORIGINAL"
    RENOVACAO = "RENOVACAO"


class StatusConcessao(str, Enum):
    APTO = "APTO"
    ATIVO = "ATIVO"
    SUSPENSO = "SUSPENSO"
    BLOQUEADO = "BLOQUEADO"
    CESSADO = "CESSADO"
    CANCELADO = "CANCELADO"


class StatusPagamento(str, Enum):
    PENDENTE = "PENDENTE"
    PROCESSADO = "PROCESSADO"
    LIBERADO = "LIBERADO"
    PAGO = "PAGO"
    VENCIDO = "VENCIDO"
    REGULARIZADO = "REGULARIZADO"
    CANCELADO = "CANCELADO"


class MetodoPagamento(str, Enum):
    PIX = "PIX"
    TED = "TED"
    DINHEIRO = "DINHEIRO"
    CARTAO = "CARTAO"


class TipoEventoHistorico(str, Enum):
    CRIACAO = "CRIACAO"
    ALTERACAO_STATUS = "ALTERACAO_STATUS"
    CANCELAMENTO = "CANCELAMENTO"


class CanalNotificacao(str, Enum):
    EMAIL = "EMAIL"
    SMS = "SMS"
    SISTEMA = "SISTEMA"


class StatusAgendamento(str, Enum):
    AGENDADA = "AGENDADA"
    PROCESSANDO = "PROCESSANDO"
    ENVIADA = "ENVIADA"
    FALHOU = "FALHOU"
    CANCELADA = "CANCELADA"
    EXPIRADA = "EXPIRADA"


class TimestampMixin:
    criado_em: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default=text("CURRENT_TIMESTAMP"), nullable=False
    )
    atualizado_em: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow,
        server_default=text("CURRENT_TIMESTAMP"), nullable=False
    )


class Solicitacao(Base, TimestampMixin):
    __tablename__ = "solicitacao"
    __table_args__ = (
        CheckConstraint("prioridade BETWEEN 1 AND 5", name="prioridade_faixa"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, index=True)
    protocolo: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    beneficiario_nome: Mapped[str] = mapped_column(Text, nullable=False)
    beneficiario_cpf: Mapped[str] = mapped_column(String(11), nullable=False, index=True)
    prioridade: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    determinacao_judicial_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[StatusSolicitacao] = mapped_column(
        _enum_column(StatusSolicitacao), nullable=False, default=StatusSolicitacao.PENDENTE
    )


class Concessao(Base, TimestampMixin):
    __tablename__ = "concessao"
    __table_args__ = (
        UniqueConstraint("solicitacao_id", name="uq_concessao_solicitacao"),
        UniqueConstraint("concessao_anterior_id", name="uq_concessao_renovacao"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, index=True)
    solicitacao_id: Mapped[int] = mapped_column(ForeignKey("solicitacao.id"), nullable=False)
    tipo: Mapped[TipoConcessao] = mapped_column(
        _enum_column(TipoConcessao), nullable=False, default=TipoConcessao.ORIGINAL
    )
    status: Mapped[StatusConcessao] = mapped_column(
        _enum_column(StatusConcessao), nullable=False, default=StatusConcessao.APTO, index=True
    )
    ordem_prioridade: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    determinacao_judicial_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    data_inicio: Mapped[date | None] = mapped_column(Date)
    data_encerramento: Mapped[date | None] = mapped_column(Date)
    motivo_encerramento: Mapped[str | None] = mapped_column(Text)

    motivo_suspensao: Mapped[str | None] = mapped_column(Text)
    data_suspensao: Mapped[datetime | None] = mapped_column(DateTime)
    data_revisao_suspensao: Mapped[date | None] = mapped_column(Date)

    motivo_bloqueio: Mapped[str | None] = mapped_column(Text)
    data_bloqueio: Mapped[datetime | None] = mapped_column(DateTime)
    motivo_desbloqueio: Mapped[str | None] = mapped_column(Text)
    data_desbloqueio: Mapped[datetime | None] = mapped_column(DateTime)

    # concessão que esta renova (vínculo 1:1)
    concessao_anterior_id: Mapped[int | None] = mapped_column(ForeignKey("concessao.id"), nullable=True)

    removido_em: Mapped[datetime | None] = mapped_column(DateTime)

    def is_terminal(self) -> bool:
        return self.status in (StatusConcessao.CESSADO, StatusConcessao.CANCELADO)


class Pagamento(Base, TimestampMixin):
    __tablename__ = "pagamento"
    __table_args__ = (
        UniqueConstraint("concessao_id", "numero_parcela", name="uq_pagamento_concessao_parcela"),
        CheckConstraint("valor > 0", name="valor_positivo"),
        CheckConstraint("numero_parcela >= 1 AND numero_parcela <= total_parcelas", name="parcela_faixa"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, index=True)
    concessao_id: Mapped[int] = mapped_column(ForeignKey("concessao.id"), nullable=False, index=True)
    solicitacao_id: Mapped[int] = mapped_column(ForeignKey("solicitacao.id"), nullable=False, index=True)
    valor: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[StatusPagamento] = mapped_column(
        _enum_column(StatusPagamento), nullable=False, default=StatusPagamento.PENDENTE, index=True
    )
    metodo_pagamento: Mapped[MetodoPagamento] = mapped_column(
        _enum_column(MetodoPagamento), nullable=False, default=MetodoPagamento.PIX
    )
    numero_parcela: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_parcelas: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    data_vencimento: Mapped[date | None] = mapped_column(Date)
    data_liberacao: Mapped[datetime | None] = mapped_column(DateTime)
    data_pagamento: Mapped[datetime | None] = mapped_column(DateTime)
    data_vencido: Mapped[datetime | None] = mapped_column(DateTime)
    data_regularizacao: Mapped[datetime | None] = mapped_column(DateTime)
    observacoes: Mapped[str | None] = mapped_column(Text)

    def is_quitado(self) -> bool:
        return self.status in (StatusPagamento.PAGO, StatusPagamento.LIBERADO)


class HistoricoConcessao(Base):
    __tablename__ = "historico_concessao"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    concessao_id: Mapped[int] = mapped_column(ForeignKey("concessao.id"), nullable=False, index=True)
    status_anterior: Mapped[StatusConcessao | None] = mapped_column(_enum_column(StatusConcessao))
    status_novo: Mapped[StatusConcessao] = mapped_column(_enum_column(StatusConcessao), nullable=False)
    usuario_id: Mapped[int | None] = mapped_column(Integer)
    motivo: Mapped[str | None] = mapped_column(Text)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class HistoricoPagamento(Base):
    __tablename__ = "historico_pagamento"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    pagamento_id: Mapped[int] = mapped_column(ForeignKey("pagamento.id"), nullable=False, index=True)
    tipo_evento: Mapped[TipoEventoHistorico] = mapped_column(
        _enum_column(TipoEventoHistorico), nullable=False, default=TipoEventoHistorico.ALTERACAO_STATUS
    )
    status_anterior: Mapped[StatusPagamento | None] = mapped_column(_enum_column(StatusPagamento))
    status_novo: Mapped[StatusPagamento] = mapped_column(_enum_column(StatusPagamento), nullable=False)
    usuario_id: Mapped[int | None] = mapped_column(Integer)
    motivo: Mapped[str | None] = mapped_column(Text)
    dados_contexto: Mapped[dict | None] = mapped_column(JSON)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class HistoricoSolicitacao(Base):
    __tablename__ = "historico_solicitacao"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    solicitacao_id: Mapped[int] = mapped_column(ForeignKey("solicitacao.id"), nullable=False, index=True)
    status_anterior: Mapped[StatusSolicitacao | None] = mapped_column(_enum_column(StatusSolicitacao))
    status_novo: Mapped[StatusSolicitacao] = mapped_column(_enum_column(StatusSolicitacao), nullable=False)
    usuario_id: Mapped[int | None] = mapped_column(Integer)
    motivo: Mapped[str | None] = mapped_column(Text)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


HISTORICO_MODELS = (HistoricoConcessao, HistoricoPagamento, HistoricoSolicitacao)


def _reject_historico_change(mapper, connection, target) -> None:
    raise HistoricoImutavelError(
        f"{type(target).__name__} rows are append-only",
        {"tabela": target.__tablename__, "id": target.id},
    )


for _model in HISTORICO_MODELS:
    event.listen(_model, "before_update", _reject_historico_change)
    event.listen(_model, "before_delete", _reject_historico_change)


class AgendamentoNotificacao(Base, TimestampMixin):
    """
    Scheduled notification send, consumed by an external sender.

    The record only carries state; the sender asks it whether it is ready,
    reports failures and successes through the methods below.
    """
    __tablename__ = "agendamento_notificacao"
    __table_args__ = (
        CheckConstraint("tentativas >= 0 AND tentativas <= max_tentativas", name="tentativas_limite"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, index=True)
    destinatario_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    canal: Mapped[CanalNotificacao] = mapped_column(
        _enum_column(CanalNotificacao), nullable=False, default=CanalNotificacao.SISTEMA
    )
    titulo: Mapped[str] = mapped_column(String(200), nullable=False)
    conteudo: Mapped[str | None] = mapped_column(Text)
    concessao_id: Mapped[int | None] = mapped_column(ForeignKey("concessao.id"), nullable=True, index=True)

    data_agendamento: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    data_expiracao: Mapped[datetime | None] = mapped_column(DateTime)
    tentativas: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_tentativas: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    status: Mapped[StatusAgendamento] = mapped_column(
        _enum_column(StatusAgendamento), nullable=False, default=StatusAgendamento.AGENDADA, index=True
    )

    notificacao_id: Mapped[str | None] = mapped_column(String(255))
    ultimo_erro: Mapped[str | None] = mapped_column(Text)
    data_envio: Mapped[datetime | None] = mapped_column(DateTime)

    STATUS_FINAIS = (StatusAgendamento.ENVIADA, StatusAgendamento.CANCELADA, StatusAgendamento.EXPIRADA)

    def is_finalizado(self) -> bool:
        return self.status in self.STATUS_FINAIS

    def is_expirado(self, agora: datetime | None = None) -> bool:
        if self.status == StatusAgendamento.EXPIRADA:
            return True
        agora = agora or datetime.utcnow()
        return self.data_expiracao is not None and agora > self.data_expiracao

    def is_pronto_para_processamento(self, agora: datetime | None = None) -> bool:
        agora = agora or datetime.utcnow()
        return (
            self.status == StatusAgendamento.AGENDADA
            and agora >= self.data_agendamento
            and not self.is_expirado(agora)
        )

    def iniciar_processamento(self) -> None:
        if self.status != StatusAgendamento.AGENDADA:
            raise NotificacaoError(
                "Only scheduled notifications can start processing",
                {"agendamento_id": self.id, "status": self.status.value},
            )
        self.status = StatusAgendamento.PROCESSANDO

    def incrementar_tentativas(self) -> None:
        """Count one attempt; the attempt that reaches the ceiling expires the schedule."""
        if self.is_finalizado():
            raise NotificacaoError(
                "No further attempts allowed for a finished notification schedule",
                {"agendamento_id": self.id, "status": self.status.value},
            )
        self.tentativas = (self.tentativas or 0) + 1
        if self.tentativas >= self.max_tentativas:
            self.tentativas = self.max_tentativas
            self.status = StatusAgendamento.EXPIRADA

    def marcar_como_enviado(self, notificacao_id: str | None = None) -> None:
        if self.is_finalizado():
            raise NotificacaoError(
                "Cannot mark a finished notification schedule as sent",
                {"agendamento_id": self.id, "status": self.status.value},
            )
        self.status = StatusAgendamento.ENVIADA
        self.notificacao_id = notificacao_id
        self.data_envio = datetime.utcnow()
        self.ultimo_erro = None

    def marcar_como_falhou(self, motivo: str) -> None:
        self.ultimo_erro = motivo
        self.incrementar_tentativas()
        if self.status != StatusAgendamento.EXPIRADA:
            self.status = StatusAgendamento.FALHOU

    def reagendar(self, nova_data: datetime) -> None:
        if self.status != StatusAgendamento.FALHOU:
            raise NotificacaoError(
                "Only failed notifications can be rescheduled",
                {"agendamento_id": self.id, "status": self.status.value},
            )
        self.data_agendamento = nova_data
        self.status = StatusAgendamento.AGENDADA

    def cancelar(self) -> None:
        if self.status not in (StatusAgendamento.AGENDADA, StatusAgendamento.FALHOU):
            raise NotificacaoError(
                "Only scheduled or failed notifications can be cancelled",
                {"agendamento_id": self.id, "status": self.status.value},
            )
        self.status = StatusAgendamento.CANCELADA

    def expirar(self) -> None:
        if self.is_finalizado():
            return
        self.status = StatusAgendamento.EXPIRADA


class LogAuditoria(Base):
    __tablename__ = "log_auditoria"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    evento_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    usuario_id: Mapped[int | None] = mapped_column(Integer)
    acao: Mapped[str] = mapped_column(Text, nullable=False)
    tabela_afetada: Mapped[str] = mapped_column(Text, nullable=False)
    registro_afetado: Mapped[int | None] = mapped_column(Integer)
    dados_anteriores: Mapped[dict | None] = mapped_column(JSON)
    dados_novos: Mapped[dict | None] = mapped_column(JSON)
    data_hora: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    detalhes_adicionais: Mapped[str | None] = mapped_column(Text)
