from __future__ import annotations
import logging
from typing import Awaitable, Callable, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.db.session import get_db
from semtas.db.models import Concessao, StatusConcessao
from semtas.core.exceptions import business_exception_to_http, BusinessLogicError
from semtas.services.concessao import ConcessaoService
from semtas.services.pagamento import PagamentoService
from semtas.schemas.common import ERROR_RESPONSES
from semtas.schemas.beneficio import (
    ConcessaoAtivar,
    ConcessaoEncerrar,
    ConcessaoMotivo,
    ConcessaoOut,
    ConcessaoProrrogar,
    ConcessaoSuspender,
    HistoricoConcessaoOut,
    PagamentoCreate,
    PagamentoGerarParcelas,
    PagamentoOut,
    PagamentosConcessaoOut,
    RenovacaoStatusOut,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/concessoes", tags=["concessoes"])


async def _executar(
    session: AsyncSession,
    operacao: Callable[[], Awaitable[Concessao]],
    descricao: str,
) -> ConcessaoOut:
    """Run a concession operation, commit, and map business errors to HTTP."""
    try:
        concessao = await operacao()
        await session.commit()
        return ConcessaoOut.model_validate(concessao)
    except BusinessLogicError as e:
        logger.warning(f"Business logic error in {descricao}: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error in {descricao}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"An unexpected error occurred in {descricao}"
        )


@router.get("", response_model=List[ConcessaoOut], summary="List concessions by priority")
async def listar_concessoes(
    status_filter: Optional[StatusConcessao] = Query(None, alias="status"),
    determinacao_judicial: Optional[bool] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
) -> List[ConcessaoOut]:
    items = await ConcessaoService().listar(
        session, status=status_filter, determinacao_judicial=determinacao_judicial, limit=limit, offset=offset
    )
    return [ConcessaoOut.model_validate(c) for c in items]


@router.get("/{concessao_id}", response_model=ConcessaoOut, responses=ERROR_RESPONSES)
async def obter_concessao(concessao_id: int, session: AsyncSession = Depends(get_db)) -> ConcessaoOut:
    try:
        return ConcessaoOut.model_validate(await ConcessaoService().get_by_id(session, concessao_id))
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


@router.post("/{concessao_id}/ativar", response_model=ConcessaoOut, responses=ERROR_RESPONSES)
async def ativar_concessao(
    concessao_id: int,
    payload: ConcessaoAtivar,
    session: AsyncSession = Depends(get_db),
) -> ConcessaoOut:
    svc = ConcessaoService()
    return await _executar(
        session,
        lambda: svc.ativar(session, concessao_id, payload.usuario_id, payload.motivo),
        f"activating concession {concessao_id}",
    )


@router.post("/{concessao_id}/suspender", response_model=ConcessaoOut, responses=ERROR_RESPONSES)
async def suspender_concessao(
    concessao_id: int,
    payload: ConcessaoSuspender,
    session: AsyncSession = Depends(get_db),
) -> ConcessaoOut:
    svc = ConcessaoService()
    return await _executar(
        session,
        lambda: svc.suspender(session, concessao_id, payload.motivo, payload.data_revisao, payload.usuario_id),
        f"suspending concession {concessao_id}",
    )


@router.post("/{concessao_id}/bloquear", response_model=ConcessaoOut, responses=ERROR_RESPONSES)
async def bloquear_concessao(
    concessao_id: int,
    payload: ConcessaoMotivo,
    session: AsyncSession = Depends(get_db),
) -> ConcessaoOut:
    svc = ConcessaoService()
    return await _executar(
        session,
        lambda: svc.bloquear(session, concessao_id, payload.motivo, payload.usuario_id),
        f"blocking concession {concessao_id}",
    )


@router.post("/{concessao_id}/desbloquear", response_model=ConcessaoOut, responses=ERROR_RESPONSES)
async def desbloquear_concessao(
    concessao_id: int,
    payload: ConcessaoMotivo,
    session: AsyncSession = Depends(get_db),
) -> ConcessaoOut:
    svc = ConcessaoService()
    return await _executar(
        session,
        lambda: svc.desbloquear(session, concessao_id, payload.motivo, payload.usuario_id),
        f"unblocking concession {concessao_id}",
    )


@router.post("/{concessao_id}/reativar", response_model=ConcessaoOut, responses=ERROR_RESPONSES)
async def reativar_concessao(
    concessao_id: int,
    payload: ConcessaoMotivo,
    session: AsyncSession = Depends(get_db),
) -> ConcessaoOut:
    svc = ConcessaoService()
    return await _executar(
        session,
        lambda: svc.reativar(session, concessao_id, payload.motivo, payload.usuario_id),
        f"resuming concession {concessao_id}",
    )


@router.post("/{concessao_id}/encerrar", response_model=ConcessaoOut, responses=ERROR_RESPONSES)
async def encerrar_concessao(
    concessao_id: int,
    payload: ConcessaoEncerrar,
    session: AsyncSession = Depends(get_db),
) -> ConcessaoOut:
    svc = ConcessaoService()
    return await _executar(
        session,
        lambda: svc.encerrar(session, concessao_id, payload.motivo, payload.data_encerramento, payload.usuario_id),
        f"closing concession {concessao_id}",
    )


@router.post("/{concessao_id}/cancelar", response_model=ConcessaoOut, responses=ERROR_RESPONSES)
async def cancelar_concessao(
    concessao_id: int,
    payload: ConcessaoMotivo,
    session: AsyncSession = Depends(get_db),
) -> ConcessaoOut:
    svc = ConcessaoService()
    return await _executar(
        session,
        lambda: svc.cancelar(session, concessao_id, payload.motivo, payload.usuario_id),
        f"cancelling concession {concessao_id}",
    )


@router.post(
    "/{concessao_id}/prorrogar",
    response_model=ConcessaoOut,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Renew a closed concession",
)
async def prorrogar_concessao(
    concessao_id: int,
    payload: ConcessaoProrrogar,
    session: AsyncSession = Depends(get_db),
) -> ConcessaoOut:
    svc = ConcessaoService()
    return await _executar(
        session,
        lambda: svc.prorrogar(
            session, concessao_id, payload.nova_solicitacao_id, payload.usuario_id, payload.motivo
        ),
        f"renewing concession {concessao_id}",
    )


@router.get("/{concessao_id}/renovacao", response_model=RenovacaoStatusOut, responses=ERROR_RESPONSES)
async def status_renovacao(concessao_id: int, session: AsyncSession = Depends(get_db)) -> RenovacaoStatusOut:
    try:
        pode = await ConcessaoService().pode_renovar(session, concessao_id)
        return RenovacaoStatusOut(concessao_id=concessao_id, pode_renovar=pode)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


@router.get(
    "/{concessao_id}/historico",
    response_model=List[HistoricoConcessaoOut],
    responses=ERROR_RESPONSES,
)
async def historico_concessao(
    concessao_id: int,
    session: AsyncSession = Depends(get_db),
) -> List[HistoricoConcessaoOut]:
    try:
        rows = await ConcessaoService().listar_historico(session, concessao_id)
        return [HistoricoConcessaoOut.model_validate(r) for r in rows]
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


@router.get(
    "/{concessao_id}/pagamentos",
    response_model=PagamentosConcessaoOut,
    responses=ERROR_RESPONSES,
)
async def listar_pagamentos_concessao(
    concessao_id: int,
    session: AsyncSession = Depends(get_db),
) -> PagamentosConcessaoOut:
    try:
        parcelas = await PagamentoService().listar_por_concessao(session, concessao_id)
        return PagamentosConcessaoOut(
            concessao_id=concessao_id,
            total_pago=PagamentoService.total_pago(parcelas),
            parcelas=[PagamentoOut.model_validate(p) for p in parcelas],
        )
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


@router.post(
    "/{concessao_id}/pagamentos",
    response_model=PagamentoOut,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Create one installment",
)
async def criar_pagamento(
    concessao_id: int,
    payload: PagamentoCreate,
    session: AsyncSession = Depends(get_db),
) -> PagamentoOut:
    try:
        pagamento = await PagamentoService().criar(
            session,
            concessao_id,
            payload.valor,
            numero_parcela=payload.numero_parcela,
            total_parcelas=payload.total_parcelas,
            metodo_pagamento=payload.metodo_pagamento,
            data_vencimento=payload.data_vencimento,
            observacoes=payload.observacoes,
            usuario_id=payload.usuario_id,
        )
        await session.commit()
        return PagamentoOut.model_validate(pagamento)
    except BusinessLogicError as e:
        logger.warning(f"Business logic error creating payment for concession {concessao_id}: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error creating payment for concession {concessao_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while creating the payment"
        )


@router.post(
    "/{concessao_id}/pagamentos/gerar",
    response_model=List[PagamentoOut],
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Generate monthly installments",
)
async def gerar_parcelas(
    concessao_id: int,
    payload: PagamentoGerarParcelas,
    session: AsyncSession = Depends(get_db),
) -> List[PagamentoOut]:
    try:
        parcelas = await PagamentoService().gerar_parcelas(
            session,
            concessao_id,
            payload.valor,
            payload.total_parcelas,
            metodo_pagamento=payload.metodo_pagamento,
            primeiro_vencimento=payload.primeiro_vencimento,
            usuario_id=payload.usuario_id,
        )
        await session.commit()
        return [PagamentoOut.model_validate(p) for p in parcelas]
    except BusinessLogicError as e:
        logger.warning(f"Business logic error generating installments for concession {concessao_id}: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error generating installments for concession {concessao_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while generating installments"
        )
