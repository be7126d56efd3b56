"""Schemas for notification schedules."""

from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from semtas.db.models import CanalNotificacao, StatusAgendamento


class AgendamentoCreate(BaseModel):
    destinatario_id: int = Field(..., gt=0)
    titulo: str = Field(..., min_length=1, max_length=200)
    conteudo: Optional[str] = None
    canal: CanalNotificacao = CanalNotificacao.SISTEMA
    concessao_id: Optional[int] = Field(None, gt=0)
    data_agendamento: datetime
    data_expiracao: Optional[datetime] = None
    max_tentativas: Optional[int] = Field(None, ge=1, le=20)


class AgendamentoEnvio(BaseModel):
    notificacao_id: Optional[str] = Field(None, max_length=255, description="Id returned by the sender")


class AgendamentoFalha(BaseModel):
    motivo: str = Field(..., min_length=1)


class AgendamentoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    destinatario_id: int
    canal: CanalNotificacao
    titulo: str
    conteudo: Optional[str] = None
    concessao_id: Optional[int] = None
    data_agendamento: datetime
    data_expiracao: Optional[datetime] = None
    tentativas: int
    max_tentativas: int
    status: StatusAgendamento
    notificacao_id: Optional[str] = None
    ultimo_erro: Optional[str] = None
    data_envio: Optional[datetime] = None


class ExpirarVencidosOut(BaseModel):
    expirados: int
