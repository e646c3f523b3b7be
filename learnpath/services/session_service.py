"""
Study session service - tracks time spent inside courses
"""
import logging
from collections import defaultdict
from datetime import timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from learnpath.database import utcnow
from learnpath.exceptions import InvalidStateError, NotFoundError
from learnpath.models import StudySession

logger = logging.getLogger(__name__)


class SessionService:
    """
    Service for study session lifecycle

    Write methods flush only; callers commit.
    """

    def start_session(
        self,
        db: Session,
        user_id: UUID,
        course_id: Optional[UUID] = None,
        module_id: Optional[UUID] = None,
        item_id: Optional[UUID] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> StudySession:
        """Open a session, closing any other active session of the user first"""
        ended = self.end_all_sessions(db, user_id)
        if ended:
            logger.info(f"Closed {ended} dangling session(s) for user {user_id}")

        session = StudySession(
            user_id=user_id,
            course_id=course_id,
            module_id=module_id,
            item_id=item_id,
            start_time=utcnow(),
            is_active=True,
            duration_seconds=0,
            ip_address=ip_address,
            user_agent=user_agent[:512] if user_agent else None,
        )
        db.add(session)
        db.flush()
        return session

    def end_session(self, db: Session, session_id: UUID, user_id: UUID) -> StudySession:
        session = db.query(StudySession).filter(
            StudySession.id == session_id,
            StudySession.user_id == user_id,
        ).first()
        if not session:
            raise NotFoundError(f"Study session {session_id} not found")
        if not session.is_active:
            raise InvalidStateError(f"Study session {session_id} already ended")

        session.end()
        db.flush()
        return session

    def _end_where(self, db: Session, *criteria) -> int:
        sessions = db.query(StudySession).filter(StudySession.is_active.is_(True), *criteria).all()
        now = utcnow()
        for session in sessions:
            session.end(now)
        db.flush()
        return len(sessions)

    def end_all_sessions(self, db: Session, user_id: UUID) -> int:
        return self._end_where(db, StudySession.user_id == user_id)

    def end_course_sessions(self, db: Session, user_id: UUID, course_id: UUID) -> int:
        return self._end_where(
            db,
            StudySession.user_id == user_id,
            StudySession.course_id == course_id,
        )

    def get_active_sessions(self, db: Session, user_id: UUID) -> List[StudySession]:
        return (
            db.query(StudySession)
            .filter(StudySession.user_id == user_id, StudySession.is_active.is_(True))
            .order_by(StudySession.start_time.desc())
            .all()
        )

    def get_study_time_stats(
        self,
        db: Session,
        user_id: UUID,
        course_id: Optional[UUID] = None,
        days: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Aggregate finished sessions

        Args:
            db: Database session
            user_id: User UUID
            course_id: Restrict to one course
            days: Restrict to sessions started in the last N days

        Returns:
            Dictionary with total, average, count and per-module time
        """
        query = db.query(StudySession).filter(
            StudySession.user_id == user_id,
            StudySession.is_active.is_(False),
        )
        if course_id is not None:
            query = query.filter(StudySession.course_id == course_id)
        if days:
            query = query.filter(StudySession.start_time >= utcnow() - timedelta(days=days))

        sessions = query.all()
        total_time = sum(s.duration_seconds or 0 for s in sessions)

        time_by_module: Dict[str, int] = defaultdict(int)
        for s in sessions:
            if s.module_id is not None:
                time_by_module[str(s.module_id)] += s.duration_seconds or 0

        return {
            "total_time": total_time,
            "average_session_time": round(total_time / len(sessions), 2) if sessions else 0.0,
            "total_sessions": len(sessions),
            "time_by_module": dict(time_by_module),
        }


# Global instance
session_service = SessionService()
