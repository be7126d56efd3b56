from __future__ import annotations
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.db.session import get_db
from semtas.db.models import StatusSolicitacao
from semtas.core.exceptions import business_exception_to_http, BusinessLogicError
from semtas.services.solicitacao import SolicitacaoService
from semtas.schemas.common import ERROR_RESPONSES
from semtas.schemas.beneficio import (
    HistoricoSolicitacaoOut,
    SolicitacaoAprovadaOut,
    SolicitacaoAprovar,
    SolicitacaoCreate,
    SolicitacaoOut,
    SolicitacaoStatusUpdate,
    ConcessaoOut,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/solicitacoes", tags=["solicitacoes"])


@router.post(
    "",
    response_model=SolicitacaoOut,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Register a benefit request",
)
async def criar_solicitacao(
    payload: SolicitacaoCreate,
    session: AsyncSession = Depends(get_db),
) -> SolicitacaoOut:
    try:
        svc = SolicitacaoService()
        solicitacao = await svc.criar(
            session,
            beneficiario_nome=payload.beneficiario_nome,
            beneficiario_cpf=payload.beneficiario_cpf,
            prioridade=payload.prioridade,
            determinacao_judicial=payload.determinacao_judicial,
            protocolo=payload.protocolo,
            usuario_id=payload.usuario_id,
        )
        await session.commit()
        return SolicitacaoOut.model_validate(solicitacao)
    except BusinessLogicError as e:
        logger.warning(f"Business logic error creating request: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error creating request: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while creating the request"
        )


@router.get("", response_model=List[SolicitacaoOut], summary="List requests")
async def listar_solicitacoes(
    status_filter: Optional[StatusSolicitacao] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
) -> List[SolicitacaoOut]:
    svc = SolicitacaoService()
    items = await svc.listar(session, status=status_filter, limit=limit, offset=offset)
    return [SolicitacaoOut.model_validate(s) for s in items]


@router.get("/{solicitacao_id}", response_model=SolicitacaoOut, responses=ERROR_RESPONSES)
async def obter_solicitacao(
    solicitacao_id: int,
    session: AsyncSession = Depends(get_db),
) -> SolicitacaoOut:
    try:
        return SolicitacaoOut.model_validate(await SolicitacaoService().get_by_id(session, solicitacao_id))
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


@router.patch(
    "/{solicitacao_id}/status",
    response_model=SolicitacaoOut,
    responses=ERROR_RESPONSES,
    summary="Move a request through analysis",
)
async def alterar_status_solicitacao(
    solicitacao_id: int,
    payload: SolicitacaoStatusUpdate,
    session: AsyncSession = Depends(get_db),
) -> SolicitacaoOut:
    try:
        solicitacao = await SolicitacaoService().alterar_status(
            session, solicitacao_id, payload.status, payload.usuario_id, payload.motivo
        )
        await session.commit()
        return SolicitacaoOut.model_validate(solicitacao)
    except BusinessLogicError as e:
        logger.warning(f"Business logic error changing request {solicitacao_id} status: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error changing request {solicitacao_id} status: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while updating the request"
        )


@router.post(
    "/{solicitacao_id}/aprovar",
    response_model=SolicitacaoAprovadaOut,
    responses=ERROR_RESPONSES,
    summary="Approve a request and create its concession",
)
async def aprovar_solicitacao(
    solicitacao_id: int,
    payload: SolicitacaoAprovar,
    session: AsyncSession = Depends(get_db),
) -> SolicitacaoAprovadaOut:
    try:
        solicitacao, concessao = await SolicitacaoService().aprovar(
            session, solicitacao_id, payload.usuario_id, payload.motivo
        )
        await session.commit()
        logger.info(f"Request {solicitacao.protocolo} approved, concession {concessao.id}")
        return SolicitacaoAprovadaOut(
            solicitacao=SolicitacaoOut.model_validate(solicitacao),
            concessao=ConcessaoOut.model_validate(concessao),
        )
    except BusinessLogicError as e:
        logger.warning(f"Business logic error approving request {solicitacao_id}: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error approving request {solicitacao_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while approving the request"
        )


@router.get(
    "/{solicitacao_id}/historico",
    response_model=List[HistoricoSolicitacaoOut],
    responses=ERROR_RESPONSES,
)
async def historico_solicitacao(
    solicitacao_id: int,
    session: AsyncSession = Depends(get_db),
) -> List[HistoricoSolicitacaoOut]:
    try:
        rows = await SolicitacaoService().listar_historico(session, solicitacao_id)
        return [HistoricoSolicitacaoOut.model_validate(r) for r in rows]
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
