import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from smartedu.models import ActivityLog, utcnow

logger = logging.getLogger(__name__)


class ActivityLogger:
    """Best-effort audit trail. A failed write never fails the audited operation."""

    def __init__(self, session_factory: sessionmaker, clock: Callable[[], datetime] = utcnow):
        self.session_factory = session_factory
        self.clock = clock

    def record(
        self,
        user_id: Optional[int],
        action: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        try:
            with self.session_factory() as db:
                db.add(ActivityLog(
                    user_id=user_id,
                    action=action,
                    resource_type=resource_type,
                    resource_id=resource_id,
                    details=details,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    created_at=self.clock(),
                ))
                db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to record activity {action} for user {user_id}: {e}")
