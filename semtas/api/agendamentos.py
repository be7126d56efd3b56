from __future__ import annotations
import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.db.session import get_db
from semtas.core.exceptions import business_exception_to_http, BusinessLogicError
from semtas.services.notificacao import AgendamentoNotificacaoService
from semtas.schemas.common import ERROR_RESPONSES
from semtas.schemas.notificacao import (
    AgendamentoCreate,
    AgendamentoEnvio,
    AgendamentoFalha,
    AgendamentoOut,
    ExpirarVencidosOut,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/agendamentos", tags=["agendamentos"])


@router.post(
    "",
    response_model=AgendamentoOut,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Schedule a notification",
)
async def agendar(payload: AgendamentoCreate, session: AsyncSession = Depends(get_db)) -> AgendamentoOut:
    try:
        agendamento = await AgendamentoNotificacaoService().agendar(
            session,
            destinatario_id=payload.destinatario_id,
            titulo=payload.titulo,
            data_agendamento=payload.data_agendamento,
            canal=payload.canal,
            conteudo=payload.conteudo,
            concessao_id=payload.concessao_id,
            data_expiracao=payload.data_expiracao,
            max_tentativas=payload.max_tentativas,
        )
        await session.commit()
        return AgendamentoOut.model_validate(agendamento)
    except BusinessLogicError as e:
        logger.warning(f"Business logic error scheduling notification: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error scheduling notification: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while scheduling the notification"
        )


@router.get("/prontos", response_model=List[AgendamentoOut], summary="Schedules ready to be sent")
async def listar_prontos(
    agora: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    session: AsyncSession = Depends(get_db),
) -> List[AgendamentoOut]:
    items = await AgendamentoNotificacaoService().listar_prontos(session, agora, limit)
    return [AgendamentoOut.model_validate(a) for a in items]


@router.get("/{agendamento_id}", response_model=AgendamentoOut, responses=ERROR_RESPONSES)
async def obter_agendamento(agendamento_id: int, session: AsyncSession = Depends(get_db)) -> AgendamentoOut:
    try:
        return AgendamentoOut.model_validate(await AgendamentoNotificacaoService().get_by_id(session, agendamento_id))
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


async def _commit_agendamento(session: AsyncSession, agendamento) -> AgendamentoOut:
    await session.commit()
    return AgendamentoOut.model_validate(agendamento)


@router.post("/{agendamento_id}/processar", response_model=AgendamentoOut, responses=ERROR_RESPONSES)
async def iniciar_processamento(agendamento_id: int, session: AsyncSession = Depends(get_db)) -> AgendamentoOut:
    try:
        agendamento = await AgendamentoNotificacaoService().iniciar_processamento(session, agendamento_id)
        return await _commit_agendamento(session, agendamento)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


@router.post("/{agendamento_id}/enviado", response_model=AgendamentoOut, responses=ERROR_RESPONSES)
async def registrar_envio(
    agendamento_id: int,
    payload: AgendamentoEnvio,
    session: AsyncSession = Depends(get_db),
) -> AgendamentoOut:
    try:
        agendamento = await AgendamentoNotificacaoService().registrar_envio(
            session, agendamento_id, payload.notificacao_id
        )
        return await _commit_agendamento(session, agendamento)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


@router.post("/{agendamento_id}/falha", response_model=AgendamentoOut, responses=ERROR_RESPONSES)
async def registrar_falha(
    agendamento_id: int,
    payload: AgendamentoFalha,
    session: AsyncSession = Depends(get_db),
) -> AgendamentoOut:
    try:
        agendamento = await AgendamentoNotificacaoService().registrar_falha(session, agendamento_id, payload.motivo)
        return await _commit_agendamento(session, agendamento)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


@router.post("/{agendamento_id}/cancelar", response_model=AgendamentoOut, responses=ERROR_RESPONSES)
async def cancelar(agendamento_id: int, session: AsyncSession = Depends(get_db)) -> AgendamentoOut:
    try:
        agendamento = await AgendamentoNotificacaoService().cancelar(session, agendamento_id)
        return await _commit_agendamento(session, agendamento)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)


@router.post("/expirar", response_model=ExpirarVencidosOut, summary="Expire schedules past their deadline")
async def expirar_vencidos(session: AsyncSession = Depends(get_db)) -> ExpirarVencidosOut:
    expirados = await AgendamentoNotificacaoService().expirar_vencidos(session)
    await session.commit()
    return ExpirarVencidosOut(expirados=expirados)
