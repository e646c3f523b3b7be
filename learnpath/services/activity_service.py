"""
Activity log service - records learner facts in the current unit of work
"""
import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from learnpath.models import ActivityType, UserActivityLog

logger = logging.getLogger(__name__)


class ActivityService:
    """Append-only log of item/module/course facts"""

    def log(
        self,
        db: Session,
        user_id: UUID,
        activity_type: ActivityType,
        reference_id: Optional[Any] = None,
        reference_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> UserActivityLog:
        entry = UserActivityLog(
            user_id=user_id,
            activity_type=activity_type,
            reference_id=str(reference_id) if reference_id is not None else None,
            reference_type=reference_type,
            details=details or {},
        )
        db.add(entry)
        db.flush()
        logger.debug(f"Activity logged: user={user_id}, type={activity_type.value}, ref={reference_id}")
        return entry

    def get_activity_log(
        self,
        db: Session,
        user_id: UUID,
        limit: int = 50,
        offset: int = 0,
        activity_type: Optional[ActivityType] = None,
        reference_id: Optional[str] = None,
    ) -> Tuple[List[UserActivityLog], int]:
        """
        Paginated activity history, newest first

        Returns:
            Tuple of (entries, total matching entries)
        """
        query = db.query(UserActivityLog).filter(UserActivityLog.user_id == user_id)

        if activity_type is not None:
            query = query.filter(UserActivityLog.activity_type == activity_type)
        if reference_id is not None:
            query = query.filter(UserActivityLog.reference_id == str(reference_id))

        total = query.count()
        entries = (
            query.order_by(UserActivityLog.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return entries, total

    def recent(self, db: Session, user_id: UUID, limit: int = 10) -> List[UserActivityLog]:
        entries, _ = self.get_activity_log(db, user_id, limit=limit)
        return entries


# Global instance
activity_service = ActivityService()
