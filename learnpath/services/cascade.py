"""
Cascade coordinator - item -> module -> course in one unit of work

Every write path of the engine goes through run_atomic: the session passed
in is the unit of work, each step receives it explicitly, and the whole
cascade commits or rolls back together.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from learnpath.config import settings
from learnpath.database import utcnow
from learnpath.exceptions import InternalError, InvalidStateError, LearnPathError, NotFoundError
from learnpath.models import (
    ActivityType,
    CourseModule,
    CourseProgress,
    ItemProgress,
    ItemStatus,
    ModuleItem,
    ModuleProgress,
)
from learnpath.schemas.progress import ItemCompletionData
from learnpath.services.activity_service import activity_service
from learnpath.services.authoring import authoring_service
from learnpath.services.course_progress import course_progress_aggregator
from learnpath.services.item_progress import item_progress_store
from learnpath.services.module_progress import module_progress_aggregator
from learnpath.services.session_service import session_service

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CascadeResult:
    item: ItemProgress
    module: ModuleProgress
    course: CourseProgress
    module_completed_now: bool = False
    course_completed_now: bool = False


class CascadeCoordinator:
    """Orchestrates progress writes and their aggregate recomputation"""

    def __init__(
        self,
        authoring=None,
        item_store=None,
        module_aggregator=None,
        course_aggregator=None,
        activity=None,
        sessions=None,
        retry_attempts: int = 1,
        retry_backoff: float = 0.2,
    ):
        self.authoring = authoring or authoring_service
        self.item_store = item_store or item_progress_store
        self.module_aggregator = module_aggregator or module_progress_aggregator
        self.course_aggregator = course_aggregator or course_progress_aggregator
        self.activity = activity or activity_service
        self.sessions = sessions or session_service
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff

    def run_atomic(self, db: Session, work: Callable[[Session], T], operation: str) -> T:
        """
        Run work(db) and commit, rolling back everything on failure

        Storage errors are retried with backoff, then surface as
        InternalError. Domain errors propagate unchanged.
        """
        total_attempts = self.retry_attempts + 1

        for attempt in range(1, total_attempts + 1):
            try:
                result = work(db)
                db.commit()
                return result
            except LearnPathError:
                db.rollback()
                raise
            except SQLAlchemyError as e:
                db.rollback()
                if attempt < total_attempts:
                    delay = self.retry_backoff * attempt
                    logger.warning(
                        f"{operation} failed (attempt {attempt}/{total_attempts}): {str(e)}. "
                        f"Retrying in {delay:.2f}s"
                    )
                    time.sleep(delay)
                    continue
                logger.error(f"{operation} failed after {total_attempts} attempts: {str(e)}")
                raise InternalError(f"Failed to {operation}") from e
            except Exception as e:
                db.rollback()
                logger.error(f"{operation} failed: {str(e)}", exc_info=True)
                raise InternalError(f"Failed to {operation}") from e

    def _cascade(
        self,
        db: Session,
        user_id: UUID,
        item_id: UUID,
        write_item: Callable[[Session], ItemProgress],
    ) -> CascadeResult:
        item = self.authoring.get_item(db, item_id)

        item_progress = write_item(db)

        try:
            module = self.authoring.get_module(db, item.module_id)
        except NotFoundError as e:
            raise InvalidStateError(f"Item {item_id} points to missing module {item.module_id}") from e
        module_result = self.module_aggregator.recompute(db, user_id, module.id)

        if module.course_id is None or not self.authoring.course_exists(db, module.course_id):
            raise InvalidStateError(f"Module {module.id} has no resolvable course")
        course_result = self.course_aggregator.recompute(db, user_id, module.course_id)

        return CascadeResult(
            item=item_progress,
            module=module_result.progress,
            course=course_result.progress,
            module_completed_now=module_result.completed_now,
            course_completed_now=course_result.completed_now,
        )

    def on_item_completed(
        self,
        db: Session,
        user_id: UUID,
        item_id: UUID,
        data: Optional[ItemCompletionData] = None,
    ) -> CascadeResult:
        data = data or ItemCompletionData()

        def write_item(db: Session) -> ItemProgress:
            progress = self.item_store.complete(db, user_id, item_id, data)
            self.activity.log(
                db,
                user_id,
                ActivityType.ITEM_COMPLETED,
                item_id,
                "item",
                {"score": data.score, "time_spent": data.time_spent},
            )
            return progress

        result = self.run_atomic(
            db,
            lambda db: self._cascade(db, user_id, item_id, write_item),
            "complete item",
        )
        logger.info(
            f"Item completed: user={user_id}, item={item_id}, "
            f"module={result.module.status.value}, course={result.course.status.value}"
        )
        return result

    def on_item_partial_progress(
        self,
        db: Session,
        user_id: UUID,
        item_id: UUID,
        percentage: float,
        time_delta_seconds: int = 0,
    ) -> CascadeResult:
        def write_item(db: Session) -> ItemProgress:
            before = self.item_store.get(db, user_id, item_id)
            was_completed = before is not None and before.status == ItemStatus.COMPLETED
            progress = self.item_store.record_partial_progress(
                db, user_id, item_id, percentage, time_delta_seconds
            )
            if progress.status == ItemStatus.COMPLETED and not was_completed:
                self.activity.log(
                    db, user_id, ActivityType.ITEM_COMPLETED, item_id, "item",
                    {"auto": True, "progress_percentage": progress.progress_percentage},
                )
            return progress

        return self.run_atomic(
            db,
            lambda db: self._cascade(db, user_id, item_id, write_item),
            "update item progress",
        )

    def on_item_started(self, db: Session, user_id: UUID, item_id: UUID) -> CascadeResult:
        def write_item(db: Session) -> ItemProgress:
            before = self.item_store.get(db, user_id, item_id)
            first_start = before is None or before.started_at is None
            progress = self.item_store.start(db, user_id, item_id)
            if first_start:
                self.activity.log(db, user_id, ActivityType.ITEM_STARTED, item_id, "item")
            return progress

        return self.run_atomic(
            db,
            lambda db: self._cascade(db, user_id, item_id, write_item),
            "start item",
        )

    def _stale_modules(self, db: Session, user_id: UUID, outline) -> list:
        rows = self.module_aggregator.list_for_modules(db, user_id, [module.id for module in outline.modules])
        stale = []
        for module in outline.modules:
            row = rows.get(module.id)
            if row is not None and row.total_items != len(outline.items_by_module.get(module.id, [])):
                stale.append(module.id)
        return stale

    def initialize_course_progress(
        self,
        db: Session,
        user_id: UUID,
        course_id: UUID,
        tenant_id: UUID,
    ) -> CourseProgress:
        """
        Create NotStarted rows for the course, its modules and items

        Existing rows keep their state, but a module row whose item count no
        longer matches the authoring tree is recomputed, followed by the
        course row.
        """
        def work(db: Session) -> CourseProgress:
            outline = self.authoring.get_course_with_modules_and_items(db, course_id, tenant_id)
            existing = self.course_aggregator.get(db, user_id, course_id)

            self.item_store.init_many(db, user_id, [item.id for item in outline.items])
            self.module_aggregator.init_many(
                db,
                user_id,
                {module.id: len(outline.items_by_module.get(module.id, [])) for module in outline.modules},
            )
            progress = self.course_aggregator.get_or_init(
                db,
                user_id,
                course_id,
                total_modules=len(outline.modules),
                total_items=len(outline.items),
            )
            stale = self._stale_modules(db, user_id, outline)
            for module_id in stale:
                self.module_aggregator.recompute(db, user_id, module_id)
            if stale or progress.total_items != len(outline.items) or progress.total_modules != len(outline.modules):
                logger.info(
                    f"Refreshing stale progress: user={user_id}, course={course_id}, modules={len(stale)}"
                )
                progress = self.course_aggregator.recompute(db, user_id, course_id).progress
            if existing is None:
                self.activity.log(db, user_id, ActivityType.COURSE_STARTED, course_id, "course")
                logger.info(f"Course progress initialized: user={user_id}, course={course_id}")
            return progress

        return self.run_atomic(db, work, "initialize course progress")

    def reset_course_progress(self, db: Session, user_id: UUID, course_id: UUID) -> None:
        """Delete every progress row of the user in the course"""
        def work(db: Session) -> None:
            if not self.authoring.course_exists(db, course_id):
                raise NotFoundError(f"Course {course_id} not found")

            module_ids = select(CourseModule.id).where(CourseModule.course_id == course_id)
            item_ids = select(ModuleItem.id).where(ModuleItem.module_id.in_(module_ids))

            items_deleted = db.query(ItemProgress).filter(
                ItemProgress.user_id == user_id,
                ItemProgress.item_id.in_(item_ids),
            ).delete(synchronize_session="fetch")
            modules_deleted = db.query(ModuleProgress).filter(
                ModuleProgress.user_id == user_id,
                ModuleProgress.module_id.in_(module_ids),
            ).delete(synchronize_session="fetch")
            db.query(CourseProgress).filter(
                CourseProgress.user_id == user_id,
                CourseProgress.course_id == course_id,
            ).delete(synchronize_session="fetch")

            self.sessions.end_course_sessions(db, user_id, course_id)
            self.activity.log(
                db,
                user_id,
                ActivityType.COURSE_RESET,
                course_id,
                "course",
                {"reset_at": utcnow().isoformat()},
            )
            logger.info(
                f"Course progress reset: user={user_id}, course={course_id}, "
                f"items={items_deleted}, modules={modules_deleted}"
            )

        self.run_atomic(db, work, "reset course progress")


# Global instance
cascade_coordinator = CascadeCoordinator(
    retry_attempts=settings.TRANSACTION_RETRY_ATTEMPTS,
    retry_backoff=settings.TRANSACTION_RETRY_BACKOFF,
)
