from __future__ import annotations
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.db.session import get_db
from semtas.core.exceptions import business_exception_to_http, BusinessLogicError
from semtas.services.pagamento import PagamentoService
from semtas.schemas.common import ERROR_RESPONSES
from semtas.schemas.beneficio import (
    HistoricoPagamentoOut,
    MarcarVencidosOut,
    MarcarVencidosRequest,
    PagamentoOut,
    PagamentoStatusUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/pagamentos", tags=["pagamentos"])


@router.get("/{pagamento_id}", response_model=PagamentoOut, responses=ERROR_RESPONSES)
async def obter_pagamento(pagamento_id: int, session: AsyncSession = Depends(get_db)) -> PagamentoOut:
    try:
        return PagamentoOut.model_validate(await PagamentoService().get_by_id(session, pagamento_id))
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


@router.patch(
    "/{pagamento_id}/status",
    response_model=PagamentoOut,
    responses=ERROR_RESPONSES,
    summary="Move a payment through its workflow",
    description="Releasing or paying installment N requires installment N-1 to be released or paid.",
)
async def alterar_status_pagamento(
    pagamento_id: int,
    payload: PagamentoStatusUpdate,
    session: AsyncSession = Depends(get_db),
) -> PagamentoOut:
    try:
        pagamento = await PagamentoService().alterar_status(
            session, pagamento_id, payload.status, payload.usuario_id, payload.motivo
        )
        await session.commit()
        return PagamentoOut.model_validate(pagamento)
    except BusinessLogicError as e:
        logger.warning(f"Business logic error changing payment {pagamento_id} status: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error changing payment {pagamento_id} status: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while updating the payment"
        )


@router.get(
    "/{pagamento_id}/historico",
    response_model=List[HistoricoPagamentoOut],
    responses=ERROR_RESPONSES,
)
async def historico_pagamento(
    pagamento_id: int,
    session: AsyncSession = Depends(get_db),
) -> List[HistoricoPagamentoOut]:
    try:
        rows = await PagamentoService().listar_historico(session, pagamento_id)
        return [HistoricoPagamentoOut.model_validate(r) for r in rows]
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


@router.post("/marcar-vencidos", response_model=MarcarVencidosOut, summary="Sweep overdue installments")
async def marcar_vencidos(
    payload: MarcarVencidosRequest,
    session: AsyncSession = Depends(get_db),
) -> MarcarVencidosOut:
    try:
        vencidos = await PagamentoService().marcar_vencidos(session, payload.hoje)
        await session.commit()
        return MarcarVencidosOut(vencidos=[p.id for p in vencidos])
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error sweeping overdue installments: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while sweeping overdue installments"
        )
