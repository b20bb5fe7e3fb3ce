"""
Durable login sessions bound to the current refresh token.

Every method takes the caller's SQLAlchemy ``Session`` first so session
writes commit or roll back with the surrounding operation.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from smartedu.models import UserSession, utcnow

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, ttl_days: int = 30, clock: Callable[[], datetime] = utcnow):
        self.ttl = timedelta(days=ttl_days)
        self.clock = clock

    def create(
        self,
        db: Session,
        user_id: int,
        refresh_token: str,
        *,
        session_token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> UserSession:
        now = self.clock()
        session = UserSession(
            user_id=user_id,
            session_token=session_token,
            refresh_token=refresh_token,
            ip_address=ip_address,
            user_agent=user_agent,
            expires_at=now + self.ttl,
            created_at=now,
            last_activity=now,
        )
        db.add(session)
        db.flush()
        return session

    def find_by_refresh_token(self, db: Session, token: str) -> Optional[UserSession]:
        session = db.scalar(select(UserSession).where(UserSession.refresh_token == token))
        return self._live(session)

    def find_by_session_id(self, db: Session, session_id: str) -> Optional[UserSession]:
        session = db.scalar(select(UserSession).where(UserSession.session_token == session_id))
        return self._live(session)

    def rotate(self, db: Session, session: UserSession, old_token: str, new_token: str) -> bool:
        """Swap the refresh token only if it is still ``old_token``."""
        now = self.clock()
        result = db.execute(
            update(UserSession)
            .where(UserSession.id == session.id, UserSession.refresh_token == old_token)
            .values(refresh_token=new_token, last_activity=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(f"Refresh token rotation lost for session {session.id}")
            return False
        session.refresh_token = new_token
        session.last_activity = now
        return True

    def touch(self, db: Session, session: UserSession) -> None:
        session.last_activity = self.clock()
        db.flush()

    def revoke(self, db: Session, session_id: str) -> bool:
        result = db.execute(delete(UserSession).where(UserSession.session_token == session_id))
        return result.rowcount > 0

    def revoke_all_for_user(self, db: Session, user_id: int) -> int:
        result = db.execute(delete(UserSession).where(UserSession.user_id == user_id))
        return result.rowcount

    def purge_expired(self, db: Session) -> int:
        result = db.execute(delete(UserSession).where(UserSession.expires_at <= self.clock()))
        if result.rowcount:
            logger.info(f"Purged {result.rowcount} expired sessions")
        return result.rowcount

    def _live(self, session: Optional[UserSession]) -> Optional[UserSession]:
        if session is None or not session.is_valid(self.clock()):
            return None
        return session
