"""
Module progress aggregator - recomputes a module row from its item rows
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from learnpath.database import insert_ignore, utcnow
from learnpath.models import ActivityType, ItemStatus, ModuleProgress, ModuleStatus
from learnpath.services.activity_service import activity_service
from learnpath.services.authoring import authoring_service
from learnpath.services.item_progress import item_progress_store

logger = logging.getLogger(__name__)


@dataclass
class ModuleRecomputeResult:
    progress: ModuleProgress
    completed_now: bool = False


def _new_row(user_id: UUID, module_id: UUID, total_items: int = 0) -> Dict:
    return {
        "id": uuid.uuid4(),
        "user_id": user_id,
        "module_id": module_id,
        "status": ModuleStatus.NOT_STARTED,
        "progress_percentage": 0.0,
        "score_percentage": 0.0,
        "items_completed": 0,
        "total_items": total_items,
        "time_spent_seconds": 0,
    }


class ModuleProgressAggregator:
    """
    Service owning user_module_progress rows

    Recompute always re-reads every item row of the module instead of
    incrementing counters, so concurrent cascades converge.
    """

    def __init__(self, authoring=None, item_store=None, activity=None):
        self.authoring = authoring or authoring_service
        self.item_store = item_store or item_progress_store
        self.activity = activity or activity_service

    def get(self, db: Session, user_id: UUID, module_id: UUID) -> Optional[ModuleProgress]:
        return db.query(ModuleProgress).filter(
            ModuleProgress.user_id == user_id,
            ModuleProgress.module_id == module_id,
        ).first()

    def get_or_init(self, db: Session, user_id: UUID, module_id: UUID) -> ModuleProgress:
        progress = self.get(db, user_id, module_id)
        if progress is not None:
            return progress

        insert_ignore(db, ModuleProgress, [_new_row(user_id, module_id)], ["user_id", "module_id"])
        return self.get(db, user_id, module_id)

    def init_many(self, db: Session, user_id: UUID, totals: Dict[UUID, int]) -> None:
        """Create NotStarted rows seeded with each module's item count"""
        rows = [_new_row(user_id, module_id, total) for module_id, total in totals.items()]
        insert_ignore(db, ModuleProgress, rows, ["user_id", "module_id"])

    def list_for_modules(
        self,
        db: Session,
        user_id: UUID,
        module_ids: Iterable[UUID],
    ) -> Dict[UUID, ModuleProgress]:
        module_ids = list(module_ids)
        if not module_ids:
            return {}
        rows = db.query(ModuleProgress).filter(
            ModuleProgress.user_id == user_id,
            ModuleProgress.module_id.in_(module_ids),
        ).all()
        return {row.module_id: row for row in rows}

    def recompute(self, db: Session, user_id: UUID, module_id: UUID) -> ModuleRecomputeResult:
        """
        Rebuild a user's module aggregate inside the caller's transaction

        Items without a progress row count as NotStarted with 0 %.
        """
        items = self.authoring.list_module_items(db, module_id)
        item_rows = self.item_store.list_for_items(db, user_id, [item.id for item in items])
        progress = self.get_or_init(db, user_id, module_id)
        now = utcnow()

        total_items = len(items)
        items_completed = sum(1 for row in item_rows.values() if row.status == ItemStatus.COMPLETED)
        any_started = any(
            row.status != ItemStatus.NOT_STARTED or (row.progress_percentage or 0) > 0
            for row in item_rows.values()
        )
        scores = [row.score for row in item_rows.values() if row.score is not None]

        progress.total_items = total_items
        progress.items_completed = items_completed
        progress.progress_percentage = round(items_completed * 100 / total_items, 2) if total_items > 0 else 0.0
        progress.score_percentage = round(sum(scores) / len(scores), 2) if scores else 0.0
        progress.time_spent_seconds = sum(row.time_spent_seconds or 0 for row in item_rows.values())
        progress.last_accessed_at = now

        if total_items > 0 and items_completed == total_items:
            status = ModuleStatus.COMPLETED
        elif items_completed > 0 or any_started:
            status = ModuleStatus.IN_PROGRESS
        else:
            status = ModuleStatus.NOT_STARTED

        completed_now = status == ModuleStatus.COMPLETED and progress.status != ModuleStatus.COMPLETED

        if status != ModuleStatus.NOT_STARTED and progress.started_at is None:
            progress.started_at = now
        if completed_now:
            progress.completed_at = now
            self.activity.log(db, user_id, ActivityType.MODULE_COMPLETED, module_id, "module")
            logger.info(f"Module completed: user={user_id}, module={module_id}")
        elif status != ModuleStatus.COMPLETED:
            progress.completed_at = None
        progress.status = status

        db.flush()
        return ModuleRecomputeResult(progress=progress, completed_now=completed_now)


# Global instance
module_progress_aggregator = ModuleProgressAggregator()
