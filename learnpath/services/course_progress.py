"""
Course progress aggregator - recomputes a course row from its module rows
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from learnpath.database import insert_ignore, utcnow
from learnpath.models import ActivityType, CourseProgress, CourseStatus, ModuleStatus
from learnpath.services.activity_service import activity_service
from learnpath.services.authoring import authoring_service
from learnpath.services.module_progress import module_progress_aggregator

logger = logging.getLogger(__name__)


@dataclass
class CourseRecomputeResult:
    progress: CourseProgress
    completed_now: bool = False


def _new_row(user_id: UUID, course_id: UUID, total_modules: int = 0, total_items: int = 0) -> Dict:
    return {
        "id": uuid.uuid4(),
        "user_id": user_id,
        "course_id": course_id,
        "status": CourseStatus.NOT_STARTED,
        "progress_percentage": 0.0,
        "score_percentage": 0.0,
        "total_modules_completed": 0,
        "total_modules": total_modules,
        "total_items_completed": 0,
        "total_items": total_items,
        "total_time_spent": 0,
    }


class CourseProgressAggregator:
    """
    Service owning user_course_progress rows

    Only active, non-deleted modules take part in the aggregate.
    """

    def __init__(self, authoring=None, module_aggregator=None, activity=None):
        self.authoring = authoring or authoring_service
        self.module_aggregator = module_aggregator or module_progress_aggregator
        self.activity = activity or activity_service

    def get(self, db: Session, user_id: UUID, course_id: UUID) -> Optional[CourseProgress]:
        return db.query(CourseProgress).filter(
            CourseProgress.user_id == user_id,
            CourseProgress.course_id == course_id,
        ).first()

    def get_or_init(
        self,
        db: Session,
        user_id: UUID,
        course_id: UUID,
        total_modules: int = 0,
        total_items: int = 0,
    ) -> CourseProgress:
        progress = self.get(db, user_id, course_id)
        if progress is not None:
            return progress

        insert_ignore(
            db,
            CourseProgress,
            [_new_row(user_id, course_id, total_modules, total_items)],
            ["user_id", "course_id"],
        )
        return self.get(db, user_id, course_id)

    def list_for_user(self, db: Session, user_id: UUID) -> List[CourseProgress]:
        return (
            db.query(CourseProgress)
            .filter(CourseProgress.user_id == user_id)
            .order_by(CourseProgress.last_accessed_at.desc())
            .all()
        )

    def recompute(self, db: Session, user_id: UUID, course_id: UUID) -> CourseRecomputeResult:
        """
        Rebuild a user's course aggregate inside the caller's transaction

        A module without a progress row counts as NotStarted with its
        authoring item count, so totals never depend on which modules the
        learner has touched.
        """
        modules = self.authoring.list_eligible_modules(db, course_id)
        module_ids = [module.id for module in modules]
        module_rows = self.module_aggregator.list_for_modules(db, user_id, module_ids)
        missing = [module_id for module_id in module_ids if module_id not in module_rows]
        item_counts = self.authoring.count_items(db, missing)

        progress = self.get_or_init(db, user_id, course_id)
        now = utcnow()

        total_modules = len(module_ids)
        modules_completed = 0
        items_completed = 0
        total_items = 0
        time_spent = 0
        any_started = False
        module_scores = []

        for module_id in module_ids:
            row = module_rows.get(module_id)
            if row is None:
                total_items += item_counts.get(module_id, 0)
                continue
            if row.status == ModuleStatus.COMPLETED:
                modules_completed += 1
            if row.status != ModuleStatus.NOT_STARTED:
                any_started = True
            items_completed += row.items_completed or 0
            total_items += row.total_items or 0
            time_spent += row.time_spent_seconds or 0
            if row.score_percentage and row.score_percentage > 0:
                module_scores.append(row.score_percentage)

        progress.total_modules = total_modules
        progress.total_modules_completed = modules_completed
        progress.total_items = total_items
        progress.total_items_completed = items_completed
        progress.progress_percentage = round(items_completed * 100 / total_items, 2) if total_items > 0 else 0.0
        progress.score_percentage = round(sum(module_scores) / len(module_scores), 2) if module_scores else 0.0
        progress.total_time_spent = time_spent
        progress.last_accessed_at = now

        if total_modules > 0 and modules_completed == total_modules:
            status = CourseStatus.COMPLETED
        elif items_completed > 0 or any_started:
            status = CourseStatus.IN_PROGRESS
        else:
            status = CourseStatus.NOT_STARTED

        completed_now = status == CourseStatus.COMPLETED and progress.status != CourseStatus.COMPLETED

        if status != CourseStatus.NOT_STARTED and progress.started_at is None:
            progress.started_at = now
        if completed_now:
            progress.completed_at = now
            self.activity.log(db, user_id, ActivityType.COURSE_COMPLETED, course_id, "course")
            logger.info(f"Course completed: user={user_id}, course={course_id}")
        elif status != CourseStatus.COMPLETED:
            progress.completed_at = None
        progress.status = status

        db.flush()
        return CourseRecomputeResult(progress=progress, completed_now=completed_now)


# Global instance
course_progress_aggregator = CourseProgressAggregator()
