"""
Progress reporting service - read-side summaries of a learner's progress
"""
import logging
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy.orm import Session

from learnpath.config import settings
from learnpath.exceptions import NotFoundError
from learnpath.models import Course, CourseStatus, ItemStatus, ModuleStatus
from learnpath.services.access_gate import ProgressSnapshot, module_access
from learnpath.services.activity_service import activity_service
from learnpath.services.authoring import authoring_service
from learnpath.services.course_progress import course_progress_aggregator
from learnpath.services.item_progress import item_progress_store
from learnpath.services.module_progress import module_progress_aggregator
from learnpath.services.session_service import session_service

logger = logging.getLogger(__name__)

STRONG_SCORE = 85
WEAK_SCORE = 70


class ProgressReportService:
    """Service for progress summaries, dashboards and module statistics"""

    def __init__(
        self,
        authoring=None,
        item_store=None,
        module_aggregator=None,
        course_aggregator=None,
        activity=None,
        sessions=None,
    ):
        self.authoring = authoring or authoring_service
        self.item_store = item_store or item_progress_store
        self.module_aggregator = module_aggregator or module_progress_aggregator
        self.course_aggregator = course_aggregator or course_progress_aggregator
        self.activity = activity or activity_service
        self.sessions = sessions or session_service

    def get_progress_summary(self, db: Session, user_id: UUID, course_id: UUID) -> Dict[str, Any]:
        """
        Full progress snapshot of a user in one course

        Args:
            db: Database session
            user_id: User UUID
            course_id: Course UUID

        Returns:
            Dictionary with course, module and item rows plus completion stats

        Raises:
            NotFoundError: progress was never initialised for the course
        """
        course_progress = self.course_aggregator.get(db, user_id, course_id)
        if course_progress is None:
            raise NotFoundError(f"No progress for user {user_id} in course {course_id}")

        modules = self.authoring.list_eligible_modules(db, course_id)
        module_rows = self.module_aggregator.list_for_modules(db, user_id, [m.id for m in modules])

        items = [item for module in modules for item in self.authoring.list_module_items(db, module.id)]
        item_rows = self.item_store.list_for_items(db, user_id, [item.id for item in items])

        ordered_modules = [module_rows[m.id] for m in modules if m.id in module_rows]
        ordered_items = [item_rows[i.id] for i in items if i.id in item_rows]

        completed_items = sum(1 for row in ordered_items if row.status == ItemStatus.COMPLETED)
        completed_modules = sum(1 for row in ordered_modules if row.status == ModuleStatus.COMPLETED)
        scores = [row.score for row in ordered_items if row.score is not None]

        return {
            "course_progress": course_progress,
            "module_progress": ordered_modules,
            "item_progress": ordered_items,
            "completion_stats": {
                "total_items": len(items),
                "completed_items": completed_items,
                "progress_percentage": round(completed_items / len(items) * 100, 2) if items else 0.0,
                "total_modules": len(modules),
                "completed_modules": completed_modules,
                "average_score": round(sum(scores) / len(scores), 2) if scores else 0.0,
            },
        }

    def get_user_courses(self, db: Session, user_id: UUID) -> Dict[str, Any]:
        """Every course the user has progress in, most recently accessed first"""
        rows = self.course_aggregator.list_for_user(db, user_id)

        courses = {}
        course_ids = [row.course_id for row in rows]
        if course_ids:
            courses = {c.id: c for c in db.query(Course).filter(Course.id.in_(course_ids)).all()}

        entries = []
        for row in rows:
            course = courses.get(row.course_id)
            entries.append({
                "course_id": row.course_id,
                "course_title": course.title if course else None,
                "course_slug": course.slug if course else None,
                "status": row.status,
                "progress_percentage": row.progress_percentage or 0.0,
                "score_percentage": row.score_percentage or 0.0,
                "started_at": row.started_at,
                "completed_at": row.completed_at,
                "last_accessed_at": row.last_accessed_at,
            })

        return {
            "courses": entries,
            "total_courses": len(rows),
            "completed_courses": sum(1 for r in rows if r.status == CourseStatus.COMPLETED),
            "in_progress_courses": sum(1 for r in rows if r.status == CourseStatus.IN_PROGRESS),
        }

    def get_user_dashboard(self, db: Session, user_id: UUID) -> Dict[str, Any]:
        rows = self.course_aggregator.list_for_user(db, user_id)
        scores = [r.score_percentage for r in rows if r.score_percentage and r.score_percentage > 0]

        return {
            "summary": {
                "total_courses": len(rows),
                "completed_courses": sum(1 for r in rows if r.status == CourseStatus.COMPLETED),
                "in_progress_courses": sum(1 for r in rows if r.status == CourseStatus.IN_PROGRESS),
                "total_study_time": sum(r.total_time_spent or 0 for r in rows),
                "average_score": round(sum(scores) / len(scores), 2) if scores else 0.0,
            },
            "recent_activity": self.activity.recent(db, user_id, limit=10),
            "current_sessions": self.sessions.get_active_sessions(db, user_id),
        }

    def get_module_stats(self, db: Session, user_id: UUID, course_id: UUID) -> List[Dict[str, Any]]:
        """
        Per-module statistics for modules the user has progress in

        Item kinds scoring >= 85 are reported as strongest areas, < 70 as
        weakest areas.
        """
        modules = self.authoring.list_eligible_modules(db, course_id)
        module_rows = self.module_aggregator.list_for_modules(db, user_id, [m.id for m in modules])

        stats = []
        for module in modules:
            row = module_rows.get(module.id)
            if row is None:
                continue

            items = self.authoring.list_module_items(db, module.id)
            kinds = {item.id: item.kind.value for item in items}
            item_rows = self.item_store.list_for_items(db, user_id, list(kinds.keys()))

            scored = [(kinds[item_id], r.score) for item_id, r in item_rows.items() if r.score is not None]
            average = sum(score for _, score in scored) / len(scored) if scored else 0.0

            stats.append({
                "module_id": module.id,
                "module_title": module.title,
                "status": row.status,
                "progress_percentage": row.progress_percentage or 0.0,
                "score_percentage": row.score_percentage or 0.0,
                "time_spent_seconds": row.time_spent_seconds or 0,
                "items_completed": row.items_completed or 0,
                "total_items": row.total_items or 0,
                "average_item_score": round(average, 2),
                "strongest_areas": sorted({kind for kind, score in scored if score >= STRONG_SCORE}),
                "weakest_areas": sorted({kind for kind, score in scored if score < WEAK_SCORE}),
            })

        return stats

    def check_module_access(
        self,
        db: Session,
        user_id: UUID,
        module_id: UUID,
        tenant_id: UUID,
    ) -> Dict[str, Any]:
        """Whether the user may open a module, using the course access gate"""
        module = self.authoring.get_module(db, module_id)
        outline = self.authoring.get_course_with_modules_and_items(db, module.course_id, tenant_id)

        module_rows = self.module_aggregator.list_for_modules(
            db, user_id, [m.id for m in outline.modules]
        )
        snapshot = ProgressSnapshot(
            module_percentages={mid: row.progress_percentage for mid, row in module_rows.items()},
        )
        decision = module_access(
            outline.modules,
            outline.items_by_module,
            snapshot,
            module_id,
            settings.DEFAULT_APPROVAL_PERCENTAGE,
        )

        row = module_rows.get(module_id)
        return {
            "module_id": module_id,
            "module_title": module.title,
            "status": row.status if row else ModuleStatus.NOT_STARTED,
            "progress_percentage": (row.progress_percentage or 0.0) if row else 0.0,
            **decision,
        }


# Global instance
progress_report_service = ProgressReportService()
