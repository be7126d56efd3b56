from __future__ import annotations
import logging
from datetime import date, datetime
from typing import Any, Optional, List
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.repositories.concessao import ConcessaoRepository
from semtas.repositories.pagamento import PagamentoRepository
from semtas.repositories.solicitacao import SolicitacaoRepository
from semtas.services.historico import HistoricoService
from semtas.db.models import (
    Concessao, HistoricoConcessao, Solicitacao, StatusConcessao, StatusPagamento,
    TipoConcessao, TipoEventoHistorico,
)
from semtas.db.event_models import EventType
from semtas.core.concessao_workflow import ConcessaoWorkflowEngine
from semtas.core.pagamento_workflow import PagamentoWorkflowEngine
from semtas.core.config import get_settings
from semtas.core.events import publish_status_alterado
from semtas.core.exceptions import (
    ConcessaoError, ConflictError, ErrorHandler, NotFoundError, TransicaoInvalidaError,
)

logger = logging.getLogger(__name__)

MOTIVO_ENCERRAMENTO_AUTOMATICO = "Encerramento automático: todas as parcelas quitadas"


class ConcessaoService:
    """Concession lifecycle: creation on approval, status transitions and renewal."""

    def __init__(self) -> None:
        self.repo = ConcessaoRepository()
        self.pagamento_repo = PagamentoRepository()
        self.solicitacao_repo = SolicitacaoRepository()
        self.historico = HistoricoService()
        self.workflow = ConcessaoWorkflowEngine()
        self.pagamento_workflow = PagamentoWorkflowEngine()

    async def get_by_id(self, session: AsyncSession, concessao_id: int) -> Concessao:
        ErrorHandler.validate_positive_integer(concessao_id, "concessao_id")
        concessao = await self.repo.get_by_id(session, concessao_id)
        if not concessao:
            raise NotFoundError(
                f"Concession with ID {concessao_id} not found",
                {"concessao_id": concessao_id}
            )
        return concessao

    async def listar(
        self,
        session: AsyncSession,
        status: Optional[StatusConcessao] = None,
        determinacao_judicial: Optional[bool] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Concessao]:
        return await self.repo.list(
            session, status=status, determinacao_judicial=determinacao_judicial, limit=limit, offset=offset
        )

    async def listar_historico(self, session: AsyncSession, concessao_id: int) -> List[HistoricoConcessao]:
        await self.get_by_id(session, concessao_id)
        return await self.historico.listar_concessao(session, concessao_id)

    async def criar_se_nao_existir(
        self,
        session: AsyncSession,
        solicitacao: Solicitacao,
        usuario_id: Optional[int] = None,
    ) -> Concessao:
        """
        Create the concession for an approved request, or return the existing one.

        Calling it twice for the same request yields the same concession; the
        unique constraint on solicitacao_id backs this up at the database.
        """
        existing = await self.repo.get_by_solicitacao_id(session, solicitacao.id)
        if existing:
            logger.debug(f"Concession already exists for solicitacao {solicitacao.id}: {existing.id}")
            return existing

        concessao = Concessao(
            solicitacao_id=solicitacao.id,
            tipo=TipoConcessao.ORIGINAL,
            status=StatusConcessao.APTO,
            ordem_prioridade=solicitacao.prioridade or get_settings().CONCESSAO_PRIORIDADE_PADRAO,
            determinacao_judicial_flag=bool(solicitacao.determinacao_judicial_flag),
        )
        try:
            await self.repo.save(session, concessao)
        except IntegrityError as e:
            raise ConflictError(
                "A concession already exists for this request",
                {"solicitacao_id": solicitacao.id, "error": str(e.orig)}
            )

        await self.historico.registrar_concessao(
            session, concessao.id, None, StatusConcessao.APTO, usuario_id, "Concessão criada"
        )
        await publish_status_alterado(
            session, EventType.CONCESSAO_CRIADA, "concessao", concessao.id,
            None, StatusConcessao.APTO.value, usuario_id=usuario_id,
            solicitacao_id=solicitacao.id,
        )
        logger.info(f"Created concession {concessao.id} for solicitacao {solicitacao.id}")
        return concessao

    async def _transicionar(
        self,
        session: AsyncSession,
        concessao: Concessao,
        novo_status: StatusConcessao,
        operacao: str,
        usuario_id: Optional[int],
        motivo: Optional[str],
        **campos: Any,
    ) -> StatusConcessao:
        """Validate and apply a status change with its side fields, then record history and the status fact."""
        transition = self.workflow.validate_transition(concessao.status, novo_status, motivo)
        if transition.operation != operacao:
            raise TransicaoInvalidaError(
                f"Operation '{operacao}' does not apply to a concession in status '{concessao.status.value}'",
                {"concessao_id": concessao.id, "current_status": concessao.status.value, "operation": operacao}
            )

        status_anterior = concessao.status
        concessao.status = novo_status
        for campo, valor in campos.items():
            setattr(concessao, campo, valor)
        await self.repo.save(session, concessao)

        await self.historico.registrar_concessao(
            session, concessao.id, status_anterior, novo_status, usuario_id, motivo
        )
        await publish_status_alterado(
            session, EventType.CONCESSAO_STATUS_ALTERADO, "concessao", concessao.id,
            status_anterior.value, novo_status.value, usuario_id=usuario_id, motivo=motivo,
        )
        logger.info(
            f"Concession {concessao.id} {status_anterior.value} -> {novo_status.value} "
            f"by {usuario_id if usuario_id is not None else 'SISTEMA'}"
        )
        return status_anterior

    async def ativar(
        self,
        session: AsyncSession,
        concessao_id: int,
        usuario_id: Optional[int] = None,
        motivo: Optional[str] = None,
    ) -> Concessao:
        concessao = await self.get_by_id(session, concessao_id)
        await self._transicionar(
            session, concessao, StatusConcessao.ATIVO, "ativar", usuario_id, motivo,
            data_inicio=concessao.data_inicio or date.today(),
        )
        return concessao

    async def suspender(
        self,
        session: AsyncSession,
        concessao_id: int,
        motivo: str,
        data_revisao: Optional[date] = None,
        usuario_id: Optional[int] = None,
    ) -> Concessao:
        """
        Suspend a concession.

        Args:
            session: Database session
            concessao_id: Concession ID
            motivo: Reason for the suspension
            data_revisao: Date the suspension is due for review
            usuario_id: Acting user, None for the system

        Raises:
            ValidationError: Missing reason
            TransicaoInvalidaError: Concession is not APTO or ATIVO
        """
        concessao = await self.get_by_id(session, concessao_id)
        motivo = ErrorHandler.validate_reason(motivo)
        await self._transicionar(
            session, concessao, StatusConcessao.SUSPENSO, "suspender", usuario_id, motivo,
            motivo_suspensao=motivo,
            data_suspensao=datetime.utcnow(),
            data_revisao_suspensao=data_revisao,
        )
        logger.warning(f"Concession {concessao_id} suspended. Reason: {motivo}")
        return concessao

    async def bloquear(
        self,
        session: AsyncSession,
        concessao_id: int,
        motivo: str,
        usuario_id: Optional[int] = None,
    ) -> Concessao:
        concessao = await self.get_by_id(session, concessao_id)
        motivo = ErrorHandler.validate_reason(motivo)
        await self._transicionar(
            session, concessao, StatusConcessao.BLOQUEADO, "bloquear", usuario_id, motivo,
            motivo_bloqueio=motivo,
            data_bloqueio=datetime.utcnow(),
        )
        logger.warning(f"Concession {concessao_id} blocked. Reason: {motivo}")
        return concessao

    async def desbloquear(
        self,
        session: AsyncSession,
        concessao_id: int,
        motivo: str,
        usuario_id: Optional[int] = None,
    ) -> Concessao:
        concessao = await self.get_by_id(session, concessao_id)
        motivo = ErrorHandler.validate_reason(motivo)
        await self._transicionar(
            session, concessao, StatusConcessao.ATIVO, "desbloquear", usuario_id, motivo,
            motivo_desbloqueio=motivo,
            data_desbloqueio=datetime.utcnow(),
            data_inicio=concessao.data_inicio or date.today(),
        )
        return concessao

    async def reativar(
        self,
        session: AsyncSession,
        concessao_id: int,
        motivo: str,
        usuario_id: Optional[int] = None,
    ) -> Concessao:
        """Resume a suspended concession."""
        concessao = await self.get_by_id(session, concessao_id)
        motivo = ErrorHandler.validate_reason(motivo)
        await self._transicionar(
            session, concessao, StatusConcessao.ATIVO, "reativar", usuario_id, motivo,
            data_revisao_suspensao=None,
            data_inicio=concessao.data_inicio or date.today(),
        )
        return concessao

    async def encerrar(
        self,
        session: AsyncSession,
        concessao_id: int,
        motivo: str,
        data_encerramento: Optional[date] = None,
        usuario_id: Optional[int] = None,
    ) -> Concessao:
        concessao = await self.get_by_id(session, concessao_id)
        return await self._encerrar(session, concessao, motivo, data_encerramento, usuario_id)

    async def _encerrar(
        self,
        session: AsyncSession,
        concessao: Concessao,
        motivo: str,
        data_encerramento: Optional[date],
        usuario_id: Optional[int],
    ) -> Concessao:
        motivo = ErrorHandler.validate_reason(motivo)
        data_encerramento = data_encerramento or date.today()
        if concessao.data_inicio and data_encerramento < concessao.data_inicio:
            raise ConcessaoError(
                "Closing date cannot be before the start date",
                {
                    "concessao_id": concessao.id,
                    "data_inicio": concessao.data_inicio.isoformat(),
                    "data_encerramento": data_encerramento.isoformat(),
                }
            )
        await self._transicionar(
            session, concessao, StatusConcessao.CESSADO, "encerrar", usuario_id, motivo,
            data_encerramento=data_encerramento,
            motivo_encerramento=motivo,
        )
        return concessao

    async def cancelar(
        self,
        session: AsyncSession,
        concessao_id: int,
        motivo: str,
        usuario_id: Optional[int] = None,
    ) -> Concessao:
        """Cancel a concession together with its unsettled installments."""
        concessao = await self.get_by_id(session, concessao_id)
        motivo = ErrorHandler.validate_reason(motivo)
        await self._transicionar(
            session, concessao, StatusConcessao.CANCELADO, "cancelar", usuario_id, motivo,
            data_encerramento=date.today(),
            motivo_encerramento=motivo,
        )

        canceled = 0
        for pagamento in await self.pagamento_repo.list_by_concessao(session, concessao.id):
            if StatusPagamento.CANCELADO not in self.pagamento_workflow.get_valid_transitions(pagamento.status):
                continue
            status_anterior = pagamento.status
            transition = self.pagamento_workflow.validate_transition(pagamento.status, StatusPagamento.CANCELADO)
            self.pagamento_workflow.apply(pagamento, transition)
            await self.pagamento_repo.save(session, pagamento)
            await self.historico.registrar_pagamento(
                session, pagamento.id, status_anterior, StatusPagamento.CANCELADO, usuario_id,
                f"Concessão cancelada: {motivo}",
                tipo_evento=TipoEventoHistorico.CANCELAMENTO,
                dados_contexto={"concessao_id": concessao.id},
            )
            await publish_status_alterado(
                session, EventType.PAGAMENTO_STATUS_ALTERADO, "pagamento", pagamento.id,
                status_anterior.value, StatusPagamento.CANCELADO.value, usuario_id=usuario_id, motivo=motivo,
            )
            canceled += 1

        logger.info(f"Concession {concessao.id} cancelled along with {canceled} pending installments")
        return concessao

    async def pode_renovar(self, session: AsyncSession, concessao_id: int) -> bool:
        concessao = await self.get_by_id(session, concessao_id)
        if concessao.status != StatusConcessao.CESSADO:
            return False
        return await self.repo.get_renovacao(session, concessao.id) is None

    async def prorrogar(
        self,
        session: AsyncSession,
        concessao_id: int,
        nova_solicitacao_id: int,
        usuario_id: Optional[int] = None,
        motivo: Optional[str] = None,
    ) -> Concessao:
        """
        Renew a closed concession.

        The renewal is a new RENOVACAO concession in APTO, tied to a new
        request and pointing back at the concession it renews. The closed
        concession itself is left untouched.

        Raises:
            ConcessaoError: Concession is not CESSADO
            ConflictError: Concession already renewed, or the new request already has a concession
            NotFoundError: Concession or request not found
        """
        anterior = await self.get_by_id(session, concessao_id)
        if anterior.status != StatusConcessao.CESSADO:
            raise ConcessaoError(
                "Only closed concessions can be renewed",
                {"concessao_id": anterior.id, "status": anterior.status.value}
            )

        if await self.repo.get_renovacao(session, anterior.id):
            raise ConflictError(
                "Concession has already been renewed",
                {"concessao_id": anterior.id}
            )

        ErrorHandler.validate_positive_integer(nova_solicitacao_id, "nova_solicitacao_id")
        solicitacao = await self.solicitacao_repo.get_by_id(session, nova_solicitacao_id)
        if not solicitacao:
            raise NotFoundError(
                f"Request with ID {nova_solicitacao_id} not found",
                {"solicitacao_id": nova_solicitacao_id}
            )
        if await self.repo.get_by_solicitacao_id(session, solicitacao.id):
            raise ConflictError(
                "The renewal request already has a concession",
                {"solicitacao_id": solicitacao.id}
            )

        renovacao = Concessao(
            solicitacao_id=solicitacao.id,
            tipo=TipoConcessao.RENOVACAO,
            status=StatusConcessao.APTO,
            ordem_prioridade=anterior.ordem_prioridade,
            determinacao_judicial_flag=anterior.determinacao_judicial_flag,
            concessao_anterior_id=anterior.id,
        )
        try:
            await self.repo.save(session, renovacao)
        except IntegrityError as e:
            raise ConflictError(
                "Concession has already been renewed",
                {"concessao_id": anterior.id, "error": str(e.orig)}
            )

        motivo = motivo or f"Renovação da concessão {anterior.id}"
        await self.historico.registrar_concessao(
            session, renovacao.id, None, StatusConcessao.APTO, usuario_id, motivo
        )
        await publish_status_alterado(
            session, EventType.CONCESSAO_RENOVADA, "concessao", renovacao.id,
            None, StatusConcessao.APTO.value, usuario_id=usuario_id, motivo=motivo,
            concessao_anterior_id=anterior.id,
        )
        logger.info(f"Concession {anterior.id} renewed as {renovacao.id}")
        return renovacao

    async def verificar_encerramento_automatico(
        self,
        session: AsyncSession,
        concessao_id: int,
    ) -> bool:
        """
        Close an active concession once installments 1..total_parcelas all
        exist and every one is settled.

        Returns:
            True if the concession was closed
        """
        concessao = await self.get_by_id(session, concessao_id)
        if concessao.status != StatusConcessao.ATIVO:
            return False

        pagamentos = await self.pagamento_repo.list_by_concessao(session, concessao.id)
        if not pagamentos:
            return False

        # every installment of the plan must exist before the concession can close
        total_parcelas = max(p.total_parcelas for p in pagamentos)
        if {p.numero_parcela for p in pagamentos} != set(range(1, total_parcelas + 1)):
            return False
        if not all(p.is_quitado() for p in pagamentos):
            return False

        await self._encerrar(session, concessao, MOTIVO_ENCERRAMENTO_AUTOMATICO, None, None)
        logger.info(f"Concession {concessao.id} closed automatically after {len(pagamentos)} settled installments")
        return True
