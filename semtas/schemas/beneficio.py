"""
Pydantic schemas for requests, concessions and payments.
"""

from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field

from semtas.db.models import (
    MetodoPagamento, StatusConcessao, StatusPagamento, StatusSolicitacao, TipoConcessao,
    TipoEventoHistorico,
)


class AcaoBase(BaseModel):
    """Actor of a state change. Authentication lives outside this service."""
    usuario_id: Optional[int] = Field(None, gt=0, description="Acting user; omitted means SISTEMA")


# ---------- Solicitação ----------

class SolicitacaoCreate(AcaoBase):
    beneficiario_nome: str = Field(..., min_length=1, max_length=200, examples=["Maria da Silva"])
    beneficiario_cpf: str = Field(..., description="CPF, formatted or digits only", examples=["529.982.247-25"])
    prioridade: Optional[int] = Field(None, ge=1, le=5, description="1 is the most urgent")
    determinacao_judicial: bool = Field(False, description="Court-ordered request; forces priority 1")
    protocolo: Optional[str] = Field(None, max_length=40, description="Generated when omitted")


class SolicitacaoStatusUpdate(AcaoBase):
    status: StatusSolicitacao
    motivo: Optional[str] = Field(None, max_length=1000)


class SolicitacaoAprovar(AcaoBase):
    motivo: Optional[str] = Field(None, max_length=1000)


class SolicitacaoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    protocolo: str
    beneficiario_nome: str
    prioridade: int
    determinacao_judicial_flag: bool
    status: StatusSolicitacao
    criado_em: datetime
    atualizado_em: datetime


class HistoricoSolicitacaoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    solicitacao_id: int
    status_anterior: Optional[StatusSolicitacao] = None
    status_novo: StatusSolicitacao
    usuario_id: Optional[int] = None
    motivo: Optional[str] = None
    criado_em: datetime


# ---------- Concessão ----------

class ConcessaoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    solicitacao_id: int
    tipo: TipoConcessao
    status: StatusConcessao
    ordem_prioridade: int
    determinacao_judicial_flag: bool
    data_inicio: Optional[date] = None
    data_encerramento: Optional[date] = None
    motivo_encerramento: Optional[str] = None
    motivo_suspensao: Optional[str] = None
    data_suspensao: Optional[datetime] = None
    data_revisao_suspensao: Optional[date] = None
    motivo_bloqueio: Optional[str] = None
    data_bloqueio: Optional[datetime] = None
    motivo_desbloqueio: Optional[str] = None
    data_desbloqueio: Optional[datetime] = None
    concessao_anterior_id: Optional[int] = None
    criado_em: datetime
    atualizado_em: datetime


class SolicitacaoAprovadaOut(BaseModel):
    solicitacao: SolicitacaoOut
    concessao: ConcessaoOut


class ConcessaoMotivo(AcaoBase):
    motivo: str = Field(..., min_length=1, max_length=1000)


class ConcessaoAtivar(AcaoBase):
    motivo: Optional[str] = Field(None, max_length=1000)


class ConcessaoSuspender(ConcessaoMotivo):
    data_revisao: Optional[date] = Field(None, description="Date the suspension is due for review")


class ConcessaoEncerrar(ConcessaoMotivo):
    data_encerramento: Optional[date] = Field(None, description="Defaults to today")


class ConcessaoProrrogar(AcaoBase):
    nova_solicitacao_id: int = Field(..., gt=0, description="Request backing the renewal")
    motivo: Optional[str] = Field(None, max_length=1000)


class HistoricoConcessaoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    concessao_id: int
    status_anterior: Optional[StatusConcessao] = None
    status_novo: StatusConcessao
    usuario_id: Optional[int] = None
    motivo: Optional[str] = None
    criado_em: datetime


class RenovacaoStatusOut(BaseModel):
    concessao_id: int
    pode_renovar: bool


# ---------- Pagamento ----------

class PagamentoCreate(AcaoBase):
    valor: Decimal = Field(..., max_digits=12, decimal_places=2, description="Amount with at most two decimal places", examples=["150.50"])
    numero_parcela: int = Field(1, ge=1)
    total_parcelas: int = Field(1, ge=1)
    metodo_pagamento: MetodoPagamento = MetodoPagamento.PIX
    data_vencimento: Optional[date] = None
    observacoes: Optional[str] = Field(None, max_length=1000)


class PagamentoGerarParcelas(AcaoBase):
    valor: Decimal = Field(..., max_digits=12, decimal_places=2, description="Amount of each installment")
    total_parcelas: int = Field(..., ge=1, le=120)
    metodo_pagamento: MetodoPagamento = MetodoPagamento.PIX
    primeiro_vencimento: Optional[date] = Field(None, description="Defaults to today")


class PagamentoStatusUpdate(AcaoBase):
    status: StatusPagamento
    motivo: Optional[str] = Field(None, max_length=1000)


class PagamentoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    concessao_id: int
    solicitacao_id: int
    valor: Decimal
    status: StatusPagamento
    metodo_pagamento: MetodoPagamento
    numero_parcela: int
    total_parcelas: int
    data_vencimento: Optional[date] = None
    data_liberacao: Optional[datetime] = None
    data_pagamento: Optional[datetime] = None
    data_vencido: Optional[datetime] = None
    data_regularizacao: Optional[datetime] = None
    observacoes: Optional[str] = None
    criado_em: datetime


class PagamentosConcessaoOut(BaseModel):
    concessao_id: int
    total_pago: Decimal
    parcelas: List[PagamentoOut]


class HistoricoPagamentoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    pagamento_id: int
    tipo_evento: TipoEventoHistorico
    status_anterior: Optional[StatusPagamento] = None
    status_novo: StatusPagamento
    usuario_id: Optional[int] = None
    motivo: Optional[str] = None
    dados_contexto: Optional[dict] = None
    criado_em: datetime


class MarcarVencidosRequest(BaseModel):
    hoje: Optional[date] = Field(None, description="Reference date, defaults to today")


class MarcarVencidosOut(BaseModel):
    vencidos: List[int]
