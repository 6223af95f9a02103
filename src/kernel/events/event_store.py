"""
Event Store service for append-only audit logging of permission changes.
"""

from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from src.kernel.events.event_types import BaseEvent
from src.kernel.models.event_log import EventLog, EventType
from src.logging_config import get_logger

logger = get_logger(__name__)

# (event_type, payload) -> None; implementations must not raise into callers
EventSink = Callable[[EventType, BaseEvent], None]


class EventStore:
    """
    Writes permission events to the immutable event log.
    
    Usage:
        event_store = EventStore(session_maker)
        event_store.record(
            EventType.PERMISSION_GRANTED,
            PermissionGrantedEvent(user_id="u1", permission="teams.manage", granted_by="admin"),
        )
    
    Instances are callable so they can be handed to the permission service
    as its event sink.
    """
    
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory
    
    def __call__(self, event_type: EventType, payload: BaseEvent) -> None:
        self.record(event_type, payload)
    
    def record(self, event_type: EventType, payload: BaseEvent) -> EventLog:
        """
        Append one event in its own transaction.
        
        Args:
            event_type: The type of event
            payload: Pydantic payload; ``user_id`` / ``granted_by`` fields,
                when present, populate the subject and actor columns
            
        Returns:
            The created EventLog record
        """
        data = payload.model_dump(mode="json")
        event = EventLog(
            event_type=event_type.value,
            subject_id=data.get("user_id"),
            actor_id=data.get("granted_by"),
            payload=data,
        )
        with self._session_factory() as session:
            session.add(event)
            session.commit()
        return event
    
    def get_subject_history(
        self,
        subject_id: str,
        event_types: Optional[List[EventType]] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[EventLog]:
        """
        Get the permission history of one user, newest first.
        
        Args:
            subject_id: The user whose grants changed
            event_types: Optional filter for specific event types
            since: Start datetime filter
            limit: Maximum number of events
        """
        query = select(EventLog).where(EventLog.subject_id == subject_id)
        
        if event_types:
            query = query.where(EventLog.event_type.in_([t.value for t in event_types]))
        if since:
            query = query.where(EventLog.created_at >= since)
        
        query = query.order_by(desc(EventLog.created_at)).limit(limit)
        
        with self._session_factory() as session:
            return list(session.execute(query).scalars().all())


def logging_event_sink(event_type: EventType, payload: BaseEvent) -> None:
    """Default sink: emit the event as a structured log record."""
    logger.info(
        "Permission event %s",
        event_type.value,
        extra={"event": payload.model_dump(mode="json")},
    )
