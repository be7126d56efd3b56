"""
Event models for the outbox of status-change facts.
Facts are stored in the same transaction as the state change they describe.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, DateTime, Integer, JSON, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from semtas.db.base import Base


class EventStatus(str, Enum):
    """Event processing status."""
    PENDENTE = "PENDENTE"
    PROCESSANDO = "PROCESSANDO"
    PUBLICADO = "PUBLICADO"
    FALHOU = "FALHOU"
    REPROCESSANDO = "REPROCESSANDO"


class EventType(str, Enum):
    """Domain event types."""
    SOLICITACAO_STATUS_ALTERADO = "solicitacao.status.alterado"

    CONCESSAO_CRIADA = "concessao.criada"
    CONCESSAO_STATUS_ALTERADO = "concessao.status.alterado"
    CONCESSAO_RENOVADA = "concessao.renovada"

    PAGAMENTO_CRIADO = "pagamento.criado"
    PAGAMENTO_STATUS_ALTERADO = "pagamento.status.alterado"

    AGENDAMENTO_STATUS_ALTERADO = "agendamento.status.alterado"


class OutboxEvent(Base):
    """
    Outbox table for reliable event publishing.
    Rows are written transactionally with business operations and consumed asynchronously.
    """
    __tablename__ = "outbox_evento"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    # Event identification
    event_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    aggregate_type: Mapped[str] = mapped_column(String(100), nullable=False)
    aggregate_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Event data
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    # 'metadata' is reserved by SQLAlchemy Declarative
    event_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    usuario_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Processing status
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=EventStatus.PENDENTE.value, index=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    # Timestamps
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default=text("CURRENT_TIMESTAMP"), nullable=False, index=True
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    next_retry_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

    # Error tracking
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
