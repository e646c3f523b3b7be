"""
Per-kind content lookups used by the reference resolver

Each lookup issues exactly one query for a batch of reference ids and
selects display columns only, never the full entity.
"""
import logging
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from learnpath.models import ContentItem, Forum, Task, Assessment, Activity
from learnpath.schemas.content import ContentSummary

logger = logging.getLogger(__name__)


def _as_uuids(reference_ids: Sequence[str]) -> Dict[UUID, List[str]]:
    """
    Parse reference ids, dropping malformed ones (they resolve as missing)

    Maps each UUID to every spelling of it found in the batch.
    """
    parsed = defaultdict(list)
    for reference_id in reference_ids:
        try:
            spellings = parsed[uuid.UUID(str(reference_id))]
            if reference_id not in spellings:
                spellings.append(reference_id)
        except ValueError:
            logger.warning(f"Malformed reference id skipped: {reference_id!r}")
    return parsed


def _iso(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


def _fetch(
    db: Session,
    model,
    reference_ids: Sequence[str],
    tenant_id: UUID,
    extra_columns: Sequence[str],
) -> Dict[str, ContentSummary]:
    ids = _as_uuids(reference_ids)
    if not ids:
        return {}

    columns = [model.id, model.title, model.description]
    columns += [getattr(model, name) for name in extra_columns]

    rows = db.query(*columns).filter(
        model.id.in_(list(ids)),
        model.tenant_id == tenant_id,
        model.deleted_at.is_(None),
    ).all()

    results = {}
    for row in rows:
        kind_fields = {name: _iso(getattr(row, name)) for name in extra_columns}
        for reference_id in ids[row.id]:
            results[reference_id] = ContentSummary(
                id=reference_id,
                title=row.title,
                description=row.description,
                kind_fields=dict(kind_fields),
            )
    return results


def find_contents(db: Session, reference_ids: Sequence[str], tenant_id: UUID) -> Dict[str, ContentSummary]:
    return _fetch(db, ContentItem, reference_ids, tenant_id, ["content_type", "content_url"])


def find_forums(db: Session, reference_ids: Sequence[str], tenant_id: UUID) -> Dict[str, ContentSummary]:
    return _fetch(db, Forum, reference_ids, tenant_id, ["start_date", "end_date"])


def find_tasks(db: Session, reference_ids: Sequence[str], tenant_id: UUID) -> Dict[str, ContentSummary]:
    return _fetch(db, Task, reference_ids, tenant_id, ["start_date", "end_date"])


def find_assessments(db: Session, reference_ids: Sequence[str], tenant_id: UUID) -> Dict[str, ContentSummary]:
    """Quizzes and surveys both live in the assessments table"""
    return _fetch(db, Assessment, reference_ids, tenant_id, ["assessment_type"])


def find_activities(db: Session, reference_ids: Sequence[str], tenant_id: UUID) -> Dict[str, ContentSummary]:
    return _fetch(db, Activity, reference_ids, tenant_id, ["activity_type"])
