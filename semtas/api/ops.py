from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.core.database import db_manager
from semtas.core.events import event_dispatcher
from semtas.db.session import get_db

router = APIRouter(prefix="/api/ops", tags=["infra"])


@router.get("/database")
async def database_status() -> Dict[str, Any]:
    """Connectivity, schema and migration checks."""
    return await db_manager.check_database_health()


@router.post("/eventos/processar")
async def processar_eventos(
    limit: int = Query(100, ge=1, le=1000),
    session: AsyncSession = Depends(get_db),
) -> Dict[str, int]:
    """Drain one batch of the status-change outbox into its handlers."""
    result = await event_dispatcher.process_pending(session, limit=limit)
    await session.commit()
    return result
