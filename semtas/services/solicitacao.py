from __future__ import annotations
import logging
import uuid
from datetime import datetime
from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.repositories.solicitacao import SolicitacaoRepository
from semtas.services.auditoria import mascarar_cpf
from semtas.services.concessao import ConcessaoService
from semtas.services.historico import HistoricoService
from semtas.db.models import Concessao, HistoricoSolicitacao, Solicitacao, StatusSolicitacao
from semtas.db.event_models import EventType
from semtas.core.config import get_settings
from semtas.core.events import publish_status_alterado
from semtas.core.solicitacao_workflow import SolicitacaoWorkflowEngine
from semtas.core.exceptions import ConflictError, ErrorHandler, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class SolicitacaoService:
    """Benefit requests: registration, analysis status and approval."""

    def __init__(self) -> None:
        self.repo = SolicitacaoRepository()
        self.concessoes = ConcessaoService()
        self.historico = HistoricoService()
        self.workflow = SolicitacaoWorkflowEngine()

    def _gen_protocolo(self) -> str:
        return f"SOL{datetime.utcnow():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"

    async def get_by_id(self, session: AsyncSession, solicitacao_id: int) -> Solicitacao:
        ErrorHandler.validate_positive_integer(solicitacao_id, "solicitacao_id")
        solicitacao = await self.repo.get_by_id(session, solicitacao_id)
        if not solicitacao:
            raise NotFoundError(
                f"Request with ID {solicitacao_id} not found",
                {"solicitacao_id": solicitacao_id}
            )
        return solicitacao

    async def listar(
        self,
        session: AsyncSession,
        status: Optional[StatusSolicitacao] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Solicitacao]:
        return await self.repo.list(session, status=status, limit=limit, offset=offset)

    async def listar_historico(self, session: AsyncSession, solicitacao_id: int) -> List[HistoricoSolicitacao]:
        await self.get_by_id(session, solicitacao_id)
        return await self.historico.listar_solicitacao(session, solicitacao_id)

    async def criar(
        self,
        session: AsyncSession,
        beneficiario_nome: str,
        beneficiario_cpf: str,
        prioridade: Optional[int] = None,
        determinacao_judicial: bool = False,
        protocolo: Optional[str] = None,
        usuario_id: Optional[int] = None,
    ) -> Solicitacao:
        if not beneficiario_nome or not beneficiario_nome.strip():
            raise ValidationError("beneficiario_nome is required", {"field": "beneficiario_nome"})
        cpf = ErrorHandler.validate_cpf(beneficiario_cpf)

        if prioridade is None:
            prioridade = get_settings().CONCESSAO_PRIORIDADE_PADRAO
        ErrorHandler.validate_positive_integer(prioridade, "prioridade")
        if prioridade > 5:
            raise ValidationError("prioridade must be between 1 and 5", {"prioridade": prioridade})
        # court orders jump the queue
        if determinacao_judicial:
            prioridade = 1

        protocolo = protocolo.strip() if protocolo else self._gen_protocolo()
        if await self.repo.get_by_protocolo(session, protocolo):
            raise ConflictError(
                f"Request with protocol {protocolo} already exists",
                {"protocolo": protocolo}
            )

        solicitacao = Solicitacao(
            protocolo=protocolo,
            beneficiario_nome=beneficiario_nome.strip(),
            beneficiario_cpf=cpf,
            prioridade=prioridade,
            determinacao_judicial_flag=determinacao_judicial,
            status=StatusSolicitacao.PENDENTE,
        )
        await self.repo.save(session, solicitacao)
        await self.historico.registrar_solicitacao(
            session, solicitacao.id, None, StatusSolicitacao.PENDENTE, usuario_id, "Solicitação registrada"
        )
        await publish_status_alterado(
            session, EventType.SOLICITACAO_STATUS_ALTERADO, "solicitacao", solicitacao.id,
            None, StatusSolicitacao.PENDENTE.value, usuario_id=usuario_id,
            protocolo=protocolo, beneficiario_cpf=mascarar_cpf(cpf),
        )
        logger.info(f"Created request {protocolo}")
        return solicitacao

    async def alterar_status(
        self,
        session: AsyncSession,
        solicitacao_id: int,
        novo_status: StatusSolicitacao,
        usuario_id: Optional[int] = None,
        motivo: Optional[str] = None,
    ) -> Solicitacao:
        """Move a request to `novo_status`. Approval always goes through `aprovar`."""
        if novo_status == StatusSolicitacao.APROVADA:
            solicitacao, _ = await self.aprovar(session, solicitacao_id, usuario_id, motivo)
            return solicitacao
        return await self._transicionar(session, solicitacao_id, novo_status, usuario_id, motivo)

    async def _transicionar(
        self,
        session: AsyncSession,
        solicitacao_id: int,
        novo_status: StatusSolicitacao,
        usuario_id: Optional[int] = None,
        motivo: Optional[str] = None,
    ) -> Solicitacao:
        solicitacao = await self.get_by_id(session, solicitacao_id)
        self.workflow.validate_transition(solicitacao.status, novo_status)
        if novo_status in (StatusSolicitacao.INDEFERIDA, StatusSolicitacao.CANCELADA):
            motivo = ErrorHandler.validate_reason(motivo)

        status_anterior = solicitacao.status
        solicitacao.status = novo_status
        await self.repo.save(session, solicitacao)

        await self.historico.registrar_solicitacao(
            session, solicitacao.id, status_anterior, novo_status, usuario_id, motivo
        )
        await publish_status_alterado(
            session, EventType.SOLICITACAO_STATUS_ALTERADO, "solicitacao", solicitacao.id,
            status_anterior.value, novo_status.value, usuario_id=usuario_id, motivo=motivo,
        )
        logger.info(f"Request {solicitacao.protocolo} {status_anterior.value} -> {novo_status.value}")
        return solicitacao

    async def aprovar(
        self,
        session: AsyncSession,
        solicitacao_id: int,
        usuario_id: Optional[int] = None,
        motivo: Optional[str] = None,
    ) -> Tuple[Solicitacao, Concessao]:
        """Approve a request under analysis and create its concession."""
        solicitacao = await self._transicionar(
            session, solicitacao_id, StatusSolicitacao.APROVADA, usuario_id, motivo or "Solicitação aprovada"
        )
        concessao = await self.concessoes.criar_se_nao_existir(session, solicitacao, usuario_id)
        return solicitacao, concessao
