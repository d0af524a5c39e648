import logging
from typing import Callable, List, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from models import Activity, EntityType

logger = logging.getLogger(__name__)


def record_activity(engine: Engine, action: str, entity_type: EntityType, entity_id: int,
                    message: str, color: str = "blue") -> None:
    """Write one activity row in its own session. Failures are logged, never raised."""
    try:
        with Session(engine) as session:
            session.add(Activity(
                action=action,
                entity_type=EntityType(entity_type).value,
                entity_id=entity_id,
                message=message,
                color=color,
            ))
            session.commit()
    except Exception as e:
        logger.error(f"Error logging activity '{action}' for {entity_type} {entity_id}: {str(e)}", exc_info=True)


class ActivityLog:
    """Fire-and-forget emitter for activity records.

    ``schedule`` receives ``(func, *args)`` and decides when the write runs; in
    requests it is ``BackgroundTasks.add_task`` so the write happens after the
    response is sent. Without a scheduler the write runs inline.
    """

    def __init__(self, engine: Engine, schedule: Optional[Callable] = None):
        self.engine = engine
        self._schedule = schedule

    def emit(self, action: str, entity_type: EntityType, entity_id: int, message: str, color: str = "blue"):
        args = (self.engine, action, entity_type, entity_id, message, color)
        if self._schedule is None:
            record_activity(*args)
        else:
            self._schedule(record_activity, *args)


def recent_activities(session: Session, limit: int = 10) -> List[Activity]:
    statement = select(Activity).order_by(Activity.timestamp.desc(), Activity.id.desc()).limit(limit)
    return list(session.exec(statement).all())
