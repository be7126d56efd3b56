from __future__ import annotations
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, List, Dict
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.repositories.pagamento import PagamentoRepository
from semtas.services.concessao import ConcessaoService
from semtas.services.historico import HistoricoService
from semtas.db.models import (
    Concessao, HistoricoPagamento, MetodoPagamento, Pagamento, StatusPagamento, TipoEventoHistorico,
)
from semtas.db.event_models import EventType
from semtas.core.pagamento_workflow import PagamentoWorkflowEngine
from semtas.core.events import publish_status_alterado
from semtas.core.exceptions import (
    ConflictError, ErrorHandler, NotFoundError, PagamentoError, ValidationError,
)

logger = logging.getLogger(__name__)


class PagamentoService:
    """Installment creation and progression through the payment workflow."""

    def __init__(self) -> None:
        self.repo = PagamentoRepository()
        self.concessoes = ConcessaoService()
        self.historico = HistoricoService()
        self.workflow = PagamentoWorkflowEngine()

    async def get_by_id(self, session: AsyncSession, pagamento_id: int) -> Pagamento:
        ErrorHandler.validate_positive_integer(pagamento_id, "pagamento_id")
        pagamento = await self.repo.get_by_id(session, pagamento_id)
        if not pagamento:
            raise NotFoundError(
                f"Payment with ID {pagamento_id} not found",
                {"pagamento_id": pagamento_id}
            )
        return pagamento

    async def listar_por_concessao(self, session: AsyncSession, concessao_id: int) -> List[Pagamento]:
        await self.concessoes.get_by_id(session, concessao_id)
        return await self.repo.list_by_concessao(session, concessao_id)

    async def listar_historico(self, session: AsyncSession, pagamento_id: int) -> List[HistoricoPagamento]:
        await self.get_by_id(session, pagamento_id)
        return await self.historico.listar_pagamento(session, pagamento_id)

    def _validar_concessao_aberta(self, concessao: Concessao) -> None:
        if concessao.is_terminal():
            raise PagamentoError(
                f"Cannot create payments for a concession in status '{concessao.status.value}'",
                {"concessao_id": concessao.id, "status": concessao.status.value}
            )

    async def criar(
        self,
        session: AsyncSession,
        concessao_id: int,
        valor: Any,
        numero_parcela: int = 1,
        total_parcelas: int = 1,
        metodo_pagamento: MetodoPagamento = MetodoPagamento.PIX,
        data_vencimento: Optional[date] = None,
        observacoes: Optional[str] = None,
        usuario_id: Optional[int] = None,
    ) -> Pagamento:
        """
        Create one installment in PENDENTE.

        Raises:
            ValidationError: Invalid amount or installment numbering
            PagamentoError: Concession is CESSADO or CANCELADO
            ConflictError: Installment number already used for this concession
        """
        concessao = await self.concessoes.get_by_id(session, concessao_id)
        self._validar_concessao_aberta(concessao)

        valor = ErrorHandler.validate_money(valor)
        ErrorHandler.validate_positive_integer(numero_parcela, "numero_parcela")
        ErrorHandler.validate_positive_integer(total_parcelas, "total_parcelas")
        if numero_parcela > total_parcelas:
            raise ValidationError(
                "numero_parcela cannot exceed total_parcelas",
                {"numero_parcela": numero_parcela, "total_parcelas": total_parcelas}
            )

        if await self.repo.get_parcela(session, concessao.id, numero_parcela):
            raise ConflictError(
                f"Installment {numero_parcela} already exists for this concession",
                {"concessao_id": concessao.id, "numero_parcela": numero_parcela}
            )

        pagamento = Pagamento(
            concessao_id=concessao.id,
            solicitacao_id=concessao.solicitacao_id,
            valor=valor,
            status=StatusPagamento.PENDENTE,
            metodo_pagamento=metodo_pagamento,
            numero_parcela=numero_parcela,
            total_parcelas=total_parcelas,
            data_vencimento=data_vencimento,
            observacoes=observacoes,
        )
        try:
            await self.repo.save(session, pagamento)
        except IntegrityError as e:
            raise ConflictError(
                "Could not create installment",
                {"concessao_id": concessao.id, "numero_parcela": numero_parcela, "error": str(e.orig)}
            )

        await self.historico.registrar_pagamento(
            session, pagamento.id, None, StatusPagamento.PENDENTE, usuario_id,
            "Pagamento criado",
            tipo_evento=TipoEventoHistorico.CRIACAO,
            dados_contexto={"valor": str(valor), "numero_parcela": numero_parcela, "total_parcelas": total_parcelas},
        )
        await publish_status_alterado(
            session, EventType.PAGAMENTO_CRIADO, "pagamento", pagamento.id,
            None, StatusPagamento.PENDENTE.value, usuario_id=usuario_id,
            concessao_id=concessao.id, valor=str(valor),
        )
        logger.info(
            f"Created installment {numero_parcela}/{total_parcelas} ({valor}) for concession {concessao.id}"
        )
        return pagamento

    async def gerar_parcelas(
        self,
        session: AsyncSession,
        concessao_id: int,
        valor: Any,
        total_parcelas: int,
        metodo_pagamento: MetodoPagamento = MetodoPagamento.PIX,
        primeiro_vencimento: Optional[date] = None,
        usuario_id: Optional[int] = None,
    ) -> List[Pagamento]:
        """
        Generate installments 1..N for a concession, due monthly.

        Installments that already exist are kept, so a partial run can be resumed.
        """
        concessao = await self.concessoes.get_by_id(session, concessao_id)
        self._validar_concessao_aberta(concessao)
        valor = ErrorHandler.validate_money(valor)
        ErrorHandler.validate_positive_integer(total_parcelas, "total_parcelas")

        existentes = {p.numero_parcela: p for p in await self.repo.list_by_concessao(session, concessao.id)}
        vencimentos = self.workflow.due_dates(primeiro_vencimento or date.today(), total_parcelas)

        parcelas: List[Pagamento] = []
        for numero, vencimento in enumerate(vencimentos, start=1):
            if numero in existentes:
                parcelas.append(existentes[numero])
                continue
            parcelas.append(await self.criar(
                session, concessao.id, valor,
                numero_parcela=numero,
                total_parcelas=total_parcelas,
                metodo_pagamento=metodo_pagamento,
                data_vencimento=vencimento,
                usuario_id=usuario_id,
            ))

        logger.info(
            f"Generated {len(parcelas) - len(existentes)} installments for concession {concessao.id}"
        )
        return parcelas

    async def _validar_parcela_anterior(self, session: AsyncSession, pagamento: Pagamento) -> None:
        if pagamento.numero_parcela <= 1:
            return
        anterior = await self.repo.get_parcela(session, pagamento.concessao_id, pagamento.numero_parcela - 1)
        if not anterior or anterior.status not in self.workflow.SETTLED_STATUSES:
            raise PagamentoError(
                f"Installment {pagamento.numero_parcela - 1} must be released or paid first",
                {
                    "pagamento_id": pagamento.id,
                    "numero_parcela": pagamento.numero_parcela,
                    "status_parcela_anterior": anterior.status.value if anterior else None,
                }
            )

    async def alterar_status(
        self,
        session: AsyncSession,
        pagamento_id: int,
        novo_status: StatusPagamento,
        usuario_id: Optional[int] = None,
        motivo: Optional[str] = None,
        dados_contexto: Optional[Dict[str, Any]] = None,
        quando: Optional[datetime] = None,
    ) -> Pagamento:
        """
        Move a payment to `novo_status`.

        Every change appends a HistoricoPagamento row and publishes a status
        fact. Settling an installment triggers the concession auto-close check.

        Raises:
            NotFoundError: Payment not found
            TransicaoInvalidaError: Transition not allowed from the current status
            PagamentoError: Previous installment not yet settled
        """
        pagamento = await self.get_by_id(session, pagamento_id)
        transition = self.workflow.validate_transition(pagamento.status, novo_status)
        if transition.requires_previous_settled:
            await self._validar_parcela_anterior(session, pagamento)

        status_anterior = pagamento.status
        self.workflow.apply(pagamento, transition, quando)
        await self.repo.save(session, pagamento)

        tipo_evento = (
            TipoEventoHistorico.CANCELAMENTO
            if novo_status == StatusPagamento.CANCELADO
            else TipoEventoHistorico.ALTERACAO_STATUS
        )
        await self.historico.registrar_pagamento(
            session, pagamento.id, status_anterior, novo_status, usuario_id, motivo,
            tipo_evento=tipo_evento, dados_contexto=dados_contexto,
        )
        await publish_status_alterado(
            session, EventType.PAGAMENTO_STATUS_ALTERADO, "pagamento", pagamento.id,
            status_anterior.value, novo_status.value, usuario_id=usuario_id, motivo=motivo,
            concessao_id=pagamento.concessao_id,
        )
        logger.info(f"Payment {pagamento.id} {status_anterior.value} -> {novo_status.value}")

        if novo_status in self.workflow.SETTLED_STATUSES:
            await self.concessoes.verificar_encerramento_automatico(session, pagamento.concessao_id)

        return pagamento

    async def processar(self, session: AsyncSession, pagamento_id: int, usuario_id: Optional[int] = None) -> Pagamento:
        return await self.alterar_status(session, pagamento_id, StatusPagamento.PROCESSADO, usuario_id)

    async def liberar(self, session: AsyncSession, pagamento_id: int, usuario_id: Optional[int] = None) -> Pagamento:
        return await self.alterar_status(session, pagamento_id, StatusPagamento.LIBERADO, usuario_id)

    async def pagar(
        self,
        session: AsyncSession,
        pagamento_id: int,
        usuario_id: Optional[int] = None,
        comprovante: Optional[str] = None,
    ) -> Pagamento:
        contexto = {"comprovante": comprovante} if comprovante else None
        return await self.alterar_status(
            session, pagamento_id, StatusPagamento.PAGO, usuario_id, dados_contexto=contexto
        )

    async def marcar_vencido(self, session: AsyncSession, pagamento_id: int, usuario_id: Optional[int] = None) -> Pagamento:
        return await self.alterar_status(session, pagamento_id, StatusPagamento.VENCIDO, usuario_id, "Prazo de pagamento expirado")

    async def regularizar(
        self,
        session: AsyncSession,
        pagamento_id: int,
        motivo: str,
        usuario_id: Optional[int] = None,
    ) -> Pagamento:
        motivo = ErrorHandler.validate_reason(motivo)
        return await self.alterar_status(session, pagamento_id, StatusPagamento.REGULARIZADO, usuario_id, motivo)

    async def cancelar(
        self,
        session: AsyncSession,
        pagamento_id: int,
        motivo: str,
        usuario_id: Optional[int] = None,
    ) -> Pagamento:
        motivo = ErrorHandler.validate_reason(motivo)
        return await self.alterar_status(session, pagamento_id, StatusPagamento.CANCELADO, usuario_id, motivo)

    async def marcar_vencidos(self, session: AsyncSession, hoje: Optional[date] = None) -> List[Pagamento]:
        """Sweep PENDENTE and PROCESSADO installments whose due date has passed to VENCIDO."""
        hoje = hoje or date.today()
        vencidos = []
        for pagamento in await self.repo.list_vencidos_em(session, hoje):
            vencidos.append(await self.alterar_status(
                session, pagamento.id, StatusPagamento.VENCIDO, None,
                "Prazo de pagamento expirado",
                dados_contexto={"data_vencimento": pagamento.data_vencimento.isoformat()},
            ))
        if vencidos:
            logger.info(f"Marked {len(vencidos)} installments as overdue on {hoje.isoformat()}")
        return vencidos

    @staticmethod
    def total_pago(pagamentos: List[Pagamento]) -> Decimal:
        return sum((p.valor for p in pagamentos if p.status == StatusPagamento.PAGO), Decimal("0.00"))
