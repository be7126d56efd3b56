"""
Event dispatcher for status-change facts.
Implements the outbox pattern: facts are written in the business transaction
and handed to registered handlers (the audit log among them) later.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.core.config import get_settings
from semtas.core.exceptions import ValidationError
from semtas.db.event_models import EventStatus, EventType, OutboxEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[AsyncSession, OutboxEvent], Awaitable[None]]


@dataclass
class DomainEvent:
    """Base domain event structure."""
    event_type: str
    aggregate_type: str
    aggregate_id: str
    payload: Dict[str, Any]
    usuario_id: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=datetime.utcnow)


class StatusAlteradoEvento(DomainEvent):
    """
    Fact emitted on every status change.

    Carries the tuple consumed by the audit log: entity type, entity id,
    previous status, new status, actor, timestamp and reason.
    """

    def __init__(
        self,
        event_type: EventType,
        tipo_entidade: str,
        entidade_id: int,
        status_anterior: Optional[str],
        status_novo: str,
        usuario_id: Optional[int] = None,
        motivo: Optional[str] = None,
        **extra: Any,
    ):
        super().__init__(
            event_type=event_type.value,
            aggregate_type=tipo_entidade,
            aggregate_id=str(entidade_id),
            payload={
                "tipo_entidade": tipo_entidade,
                "entidade_id": entidade_id,
                "status_anterior": status_anterior,
                "status_novo": status_novo,
                "motivo": motivo,
                **extra,
            },
            usuario_id=usuario_id,
        )


class EventDispatcher:
    """
    Event dispatcher for publishing domain events using the outbox pattern.
    Ensures transactional consistency between business operations and event publishing.
    """

    def __init__(self):
        self._event_handlers: Dict[str, List[EventHandler]] = {}

    async def publish_event(self, session: AsyncSession, event: DomainEvent) -> OutboxEvent:
        """
        Publish a domain event to the outbox table.

        Args:
            session: Database session (must be part of the business transaction)
            event: Domain event to publish
        """
        if not event.event_type or not event.aggregate_type or not event.aggregate_id:
            raise ValidationError("Event must have type, aggregate_type, and aggregate_id")

        outbox_event = OutboxEvent(
            event_id=event.event_id,
            event_type=event.event_type,
            aggregate_type=event.aggregate_type,
            aggregate_id=event.aggregate_id,
            payload=event.payload,
            event_metadata=event.metadata or {},
            usuario_id=event.usuario_id,
            occurred_at=event.occurred_at,
            status=EventStatus.PENDENTE.value,
            max_retries=get_settings().EVENTOS_MAX_TENTATIVAS,
        )

        session.add(outbox_event)
        await session.flush()

        logger.info(
            "Published event %s for %s:%s",
            event.event_type, event.aggregate_type, event.aggregate_id,
        )
        return outbox_event

    async def get_pending_events(
        self,
        session: AsyncSession,
        limit: int = 100,
        event_types: Optional[List[str]] = None,
        now: Optional[datetime] = None,
    ) -> List[OutboxEvent]:
        """Get pending or retry-due events, oldest first."""
        now = now or datetime.utcnow()
        query = select(OutboxEvent).where(
            and_(
                OutboxEvent.status.in_([EventStatus.PENDENTE.value, EventStatus.REPROCESSANDO.value]),
                or_(
                    OutboxEvent.next_retry_at.is_(None),
                    OutboxEvent.next_retry_at <= now,
                )
            )
        )

        if event_types:
            query = query.where(OutboxEvent.event_type.in_(event_types))

        query = query.order_by(OutboxEvent.created_at, OutboxEvent.id).limit(limit)
        result = await session.execute(query)
        return list(result.scalars().all())

    async def mark_event_published(self, session: AsyncSession, event: OutboxEvent) -> None:
        event.status = EventStatus.PUBLICADO.value
        event.processed_at = datetime.utcnow()
        event.last_error = None
        await session.flush()

    async def mark_event_failed(
        self,
        session: AsyncSession,
        event: OutboxEvent,
        error_message: str,
        retry_delay_minutes: Optional[int] = None,
    ) -> None:
        """Mark an event as failed and schedule a retry while attempts remain."""
        if retry_delay_minutes is None:
            retry_delay_minutes = get_settings().EVENTOS_RETRY_MINUTOS

        event.retry_count += 1
        event.last_error = error_message

        if event.retry_count >= event.max_retries:
            event.status = EventStatus.FALHOU.value
            logger.error("Event %s failed permanently after %s retries", event.event_id, event.retry_count)
        else:
            event.status = EventStatus.REPROCESSANDO.value
            event.next_retry_at = datetime.utcnow() + timedelta(minutes=retry_delay_minutes * event.retry_count)
            logger.warning(
                "Event %s failed, scheduling retry %s/%s",
                event.event_id, event.retry_count, event.max_retries,
            )

        await session.flush()

    def register_handler(self, event_type: str, handler: EventHandler) -> None:
        """Register an async handler for a specific event type."""
        handlers = self._event_handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.info("Registered handler for event type: %s", event_type)

    def clear_handlers(self) -> None:
        self._event_handlers.clear()

    async def process_event(self, session: AsyncSession, event: OutboxEvent) -> bool:
        """
        Process a single event by calling registered handlers.

        Returns:
            True if processing succeeded, False otherwise
        """
        event.status = EventStatus.PROCESSANDO.value
        await session.flush()

        handlers = self._event_handlers.get(event.event_type, [])
        if not handlers:
            logger.warning("No handlers registered for event type: %s", event.event_type)
            await self.mark_event_published(session, event)
            return True

        try:
            # handler writes are undone together when one of them fails
            async with session.begin_nested():
                for handler in handlers:
                    await handler(session, event)
        except Exception as e:
            logger.error("Handler failed for event %s: %s", event.event_id, e)
            await self.mark_event_failed(session, event, str(e))
            return False

        await self.mark_event_published(session, event)
        logger.info("Successfully processed event %s", event.event_id)
        return True

    async def process_pending(self, session: AsyncSession, limit: int = 100) -> Dict[str, int]:
        """Drain one batch of pending events."""
        events = await self.get_pending_events(session, limit=limit)
        processed = failed = 0
        for event in events:
            if await self.process_event(session, event):
                processed += 1
            else:
                failed += 1
        return {"processed": processed, "failed": failed}


# Global event dispatcher instance
event_dispatcher = EventDispatcher()


async def publish_status_alterado(
    session: AsyncSession,
    event_type: EventType,
    tipo_entidade: str,
    entidade_id: int,
    status_anterior: Optional[str],
    status_novo: str,
    usuario_id: Optional[int] = None,
    motivo: Optional[str] = None,
    **extra: Any,
) -> OutboxEvent:
    """Publish a status-change fact."""
    event = StatusAlteradoEvento(
        event_type, tipo_entidade, entidade_id, status_anterior, status_novo,
        usuario_id=usuario_id, motivo=motivo, **extra,
    )
    return await event_dispatcher.publish_event(session, event)
