"""
Item progress store - per-user item rows and the item state machine

NotStarted -> InProgress -> {Completed | Skipped | Failed}. Completed can be
re-entered (retakes); Skipped and Failed are terminal for automatic
transitions.
"""
import logging
import uuid
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from learnpath.config import settings
from learnpath.database import insert_ignore, utcnow
from learnpath.models import ItemProgress, ItemStatus
from learnpath.schemas.progress import ItemCompletionData

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (ItemStatus.SKIPPED, ItemStatus.FAILED)


def _new_row(user_id: UUID, item_id: UUID) -> Dict:
    return {
        "id": uuid.uuid4(),
        "user_id": user_id,
        "item_id": item_id,
        "status": ItemStatus.NOT_STARTED,
        "progress_percentage": 0.0,
        "time_spent_seconds": 0,
        "attempts": 0,
    }


class ItemProgressStore:
    """
    Service owning user_item_progress rows

    Every method takes the caller's session and never commits; the
    cascade coordinator owns the transaction.
    """

    def __init__(self, auto_complete_threshold: float = 97.0):
        self.auto_complete_threshold = auto_complete_threshold

    def get(self, db: Session, user_id: UUID, item_id: UUID) -> Optional[ItemProgress]:
        return db.query(ItemProgress).filter(
            ItemProgress.user_id == user_id,
            ItemProgress.item_id == item_id,
        ).first()

    def get_or_init(self, db: Session, user_id: UUID, item_id: UUID) -> ItemProgress:
        """Insert-or-get; safe under concurrent first access"""
        progress = self.get(db, user_id, item_id)
        if progress is not None:
            return progress

        insert_ignore(db, ItemProgress, [_new_row(user_id, item_id)], ["user_id", "item_id"])
        return self.get(db, user_id, item_id)

    def init_many(self, db: Session, user_id: UUID, item_ids: Iterable[UUID]) -> None:
        """Create NotStarted rows for every item that has none yet"""
        rows = [_new_row(user_id, item_id) for item_id in item_ids]
        insert_ignore(db, ItemProgress, rows, ["user_id", "item_id"])

    def list_for_items(
        self,
        db: Session,
        user_id: UUID,
        item_ids: List[UUID],
    ) -> Dict[UUID, ItemProgress]:
        if not item_ids:
            return {}
        rows = db.query(ItemProgress).filter(
            ItemProgress.user_id == user_id,
            ItemProgress.item_id.in_(item_ids),
        ).all()
        return {row.item_id: row for row in rows}

    def start(self, db: Session, user_id: UUID, item_id: UUID) -> ItemProgress:
        progress = self.get_or_init(db, user_id, item_id)
        now = utcnow()

        if progress.status == ItemStatus.NOT_STARTED:
            progress.status = ItemStatus.IN_PROGRESS
        if progress.started_at is None:
            progress.started_at = now
        progress.last_accessed_at = now

        db.flush()
        return progress

    def record_partial_progress(
        self,
        db: Session,
        user_id: UUID,
        item_id: UUID,
        percentage: float,
        time_delta_seconds: int = 0,
    ) -> ItemProgress:
        """
        Apply a client progress report

        A report lower than the stored percentage is ignored (stale
        client); time is always accumulated.
        """
        progress = self.get_or_init(db, user_id, item_id)
        now = utcnow()
        percentage = min(max(float(percentage), 0.0), 100.0)

        if percentage > (progress.progress_percentage or 0.0):
            progress.progress_percentage = percentage
        else:
            logger.debug(
                f"Ignoring stale progress {percentage} < {progress.progress_percentage} "
                f"for user={user_id}, item={item_id}"
            )

        if time_delta_seconds and time_delta_seconds > 0:
            progress.time_spent_seconds = (progress.time_spent_seconds or 0) + int(time_delta_seconds)
        progress.last_accessed_at = now

        if progress.status not in TERMINAL_STATUSES:
            if (
                progress.progress_percentage >= self.auto_complete_threshold
                and progress.status != ItemStatus.COMPLETED
            ):
                progress.status = ItemStatus.COMPLETED
                progress.attempts = (progress.attempts or 0) + 1
                progress.completed_at = now
                if progress.started_at is None:
                    progress.started_at = now
                logger.info(f"Item auto-completed: user={user_id}, item={item_id}")
            elif progress.progress_percentage > 0 and progress.status == ItemStatus.NOT_STARTED:
                progress.status = ItemStatus.IN_PROGRESS
                progress.started_at = progress.started_at or now

        db.flush()
        return progress

    def complete(
        self,
        db: Session,
        user_id: UUID,
        item_id: UUID,
        data: Optional[ItemCompletionData] = None,
    ) -> ItemProgress:
        """
        Force an item to Completed

        Calling it again is idempotent for attempts and completed_at; the
        score, best score, time, responses and metadata are still merged.
        """
        data = data or ItemCompletionData()
        progress = self.get_or_init(db, user_id, item_id)
        now = utcnow()

        if progress.status != ItemStatus.COMPLETED:
            progress.attempts = (progress.attempts or 0) + 1
            progress.completed_at = now
        progress.status = ItemStatus.COMPLETED
        progress.completed_at = progress.completed_at or now
        progress.started_at = progress.started_at or now
        progress.last_accessed_at = now
        progress.progress_percentage = 100.0

        if data.score is not None:
            progress.score = data.score
            if progress.best_score is None or data.score > progress.best_score:
                progress.best_score = data.score

        if data.time_spent:
            progress.time_spent_seconds = (progress.time_spent_seconds or 0) + data.time_spent

        if data.responses is not None:
            progress.responses = dict(data.responses)

        if data.metadata:
            progress.metadata_ = {**(progress.metadata_ or {}), **data.metadata}

        db.flush()
        return progress


# Global instance
item_progress_store = ItemProgressStore(auto_complete_threshold=settings.AUTO_COMPLETE_THRESHOLD)
