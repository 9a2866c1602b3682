"""
Event Store service for append-only audit logging.

State mutations are logged here inside the transaction that performs them,
so an aborted transition leaves no audit trace.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fypflow.kernel.models.event_log import EventLog, EventType


class EventStore:
    """
    Service for managing the immutable event log.

    Usage:
        event_store = EventStore(session)
        await event_store.log(
            event_type=EventType.SUBMISSION_STATUS_CHANGED,
            entity_type="submission",
            entity_id=submission.id,
            user_id=actor_id,
            payload={"from_status": "PENDING_SUPERVISOR", "to_status": "LOCKED_FOR_EVAL"},
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> EventLog:
        """
        Log an event to the immutable audit log.

        Args:
            event_type: The type of event
            entity_type: The type of entity (submission, project, deadline, final_result)
            entity_id: The ID of the entity
            user_id: The acting user (None for the deadline sweep)
            payload: Additional event data

        Returns:
            The created EventLog record
        """
        event = EventLog(
            event_type=event_type.value,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            payload=serialize_payload(payload or {}),
        )
        self.session.add(event)
        # Caller's transaction commits it together with the mutation
        return event

    async def count_events(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        event_type: Optional[EventType] = None,
    ) -> int:
        """Count events matching the given criteria."""
        query = select(func.count(EventLog.id))
        if entity_type:
            query = query.where(EventLog.entity_type == entity_type)
        if entity_id:
            query = query.where(EventLog.entity_id == entity_id)
        if event_type:
            query = query.where(EventLog.event_type == event_type.value)

        result = await self.session.execute(query)
        return result.scalar() or 0


def serialize_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Convert payload values to JSON-serializable types."""
    return {key: _serialize_value(value) for key, value in payload.items()}


def _serialize_value(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return serialize_payload(value)
    if isinstance(value, (list, tuple)):
        return [_serialize_value(v) for v in value]
    return value
