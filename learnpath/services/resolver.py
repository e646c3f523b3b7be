"""
Reference resolver - batched resolution of polymorphic module items

Items are grouped by kind and each kind is resolved with exactly one
lookup, dispatched through a table so a new content kind is one entry.
"""
import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from learnpath.config import settings
from learnpath.database import SessionLocal
from learnpath.exceptions import PartialResolutionFailure
from learnpath.models import ItemKind, ModuleItem
from learnpath.schemas.content import ContentSummary, ResolvedItem
from learnpath.services.content_lookups import (
    find_contents,
    find_forums,
    find_tasks,
    find_assessments,
    find_activities,
)

logger = logging.getLogger(__name__)

ContentLookup = Callable[[Session, Sequence[str], UUID], Dict[str, ContentSummary]]

DEFAULT_LOOKUPS: Dict[ItemKind, ContentLookup] = {
    ItemKind.CONTENT: find_contents,
    ItemKind.FORUM: find_forums,
    ItemKind.TASK: find_tasks,
    ItemKind.QUIZ: find_assessments,
    ItemKind.SURVEY: find_assessments,
    ItemKind.ACTIVITY: find_activities,
}

FALLBACK_TITLES: Dict[ItemKind, str] = {
    ItemKind.CONTENT: "Untitled content",
    ItemKind.FORUM: "Untitled forum",
    ItemKind.TASK: "Untitled task",
    ItemKind.QUIZ: "Untitled quiz",
    ItemKind.SURVEY: "Untitled survey",
    ItemKind.ACTIVITY: "Untitled activity",
}
DEFAULT_FALLBACK_TITLE = "Untitled"


def fallback_item(item: ModuleItem) -> ResolvedItem:
    """Sentinel for an item whose reference could not be resolved"""
    return ResolvedItem(
        item_id=item.id,
        module_id=item.module_id,
        kind=item.kind,
        reference_id=item.reference_id,
        order=item.order or 0,
        title=FALLBACK_TITLES.get(item.kind, DEFAULT_FALLBACK_TITLE),
        missing=True,
    )


class ReferenceResolver:
    """
    Resolve module items into display data

    With a session factory, per-kind lookups run concurrently, each in
    its own session. Without one they run sequentially on the caller's
    session.
    """

    def __init__(
        self,
        lookups: Optional[Dict[ItemKind, ContentLookup]] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        max_workers: int = 4,
    ):
        self.lookups = dict(DEFAULT_LOOKUPS if lookups is None else lookups)
        self.session_factory = session_factory
        self.max_workers = max_workers

    def register(self, kind: ItemKind, lookup: ContentLookup) -> None:
        self.lookups[kind] = lookup

    def resolve(
        self,
        db: Session,
        items: Iterable[ModuleItem],
        tenant_id: UUID,
    ) -> Dict[UUID, ResolvedItem]:
        """
        Resolve a heterogeneous batch of items

        Returns:
            Dict keyed by item id. Missing references get a fallback
            entry; items of an unsupported kind are left out.
        """
        partitions: Dict[ItemKind, List[ModuleItem]] = defaultdict(list)
        for item in items:
            if item.kind not in self.lookups:
                logger.warning(f"No resolver for item kind '{item.kind}', skipping item {item.id}")
                continue
            partitions[item.kind].append(item)

        if not partitions:
            return {}

        found_by_kind = self._run_partitions(db, partitions, tenant_id)

        resolved: Dict[UUID, ResolvedItem] = {}
        for kind, kind_items in partitions.items():
            found = found_by_kind.get(kind, {})
            for item in kind_items:
                summary = found.get(item.reference_id)
                if summary is None:
                    resolved[item.id] = fallback_item(item)
                    continue
                resolved[item.id] = ResolvedItem(
                    item_id=item.id,
                    module_id=item.module_id,
                    kind=item.kind,
                    reference_id=item.reference_id,
                    order=item.order or 0,
                    title=summary.title or FALLBACK_TITLES.get(kind, DEFAULT_FALLBACK_TITLE),
                    description=summary.description,
                    kind_fields=summary.kind_fields,
                )

        logger.info(
            f"Resolved {len(resolved)} items across {len(partitions)} kinds "
            f"({sum(1 for r in resolved.values() if r.missing)} missing)"
        )
        return resolved

    def _run_partitions(
        self,
        db: Session,
        partitions: Dict[ItemKind, List[ModuleItem]],
        tenant_id: UUID,
    ) -> Dict[ItemKind, Dict[str, ContentSummary]]:
        requests = {
            kind: list(dict.fromkeys(item.reference_id for item in kind_items))
            for kind, kind_items in partitions.items()
        }

        if self.session_factory is None or len(requests) == 1:
            return {
                kind: self._safe_lookup(db, kind, reference_ids, tenant_id)
                for kind, reference_ids in requests.items()
            }

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(requests))) as pool:
            futures = {
                kind: pool.submit(self._lookup_in_own_session, kind, reference_ids, tenant_id)
                for kind, reference_ids in requests.items()
            }
            return {kind: future.result() for kind, future in futures.items()}

    def _lookup_in_own_session(
        self,
        kind: ItemKind,
        reference_ids: List[str],
        tenant_id: UUID,
    ) -> Dict[str, ContentSummary]:
        session = self.session_factory()
        try:
            return self._safe_lookup(session, kind, reference_ids, tenant_id)
        finally:
            session.close()

    def _safe_lookup(
        self,
        db: Session,
        kind: ItemKind,
        reference_ids: List[str],
        tenant_id: UUID,
    ) -> Dict[str, ContentSummary]:
        """One kind's lookup; a failure degrades that kind only"""
        try:
            return self._run_lookup(db, kind, reference_ids, tenant_id)
        except PartialResolutionFailure as e:
            logger.error(f"{e.message}; rendering fallbacks", exc_info=e.__cause__)
            return {}

    def _run_lookup(
        self,
        db: Session,
        kind: ItemKind,
        reference_ids: List[str],
        tenant_id: UUID,
    ) -> Dict[str, ContentSummary]:
        lookup = self.lookups[kind]
        try:
            found = lookup(db, reference_ids, tenant_id)
        except SQLAlchemyError as e:
            # A failed statement poisons the read transaction on PostgreSQL;
            # resolution never runs inside a write unit of work.
            db.rollback()
            raise PartialResolutionFailure(kind.value, reference_ids) from e
        except Exception as e:
            raise PartialResolutionFailure(kind.value, reference_ids) from e

        missing = [ref for ref in reference_ids if ref not in found]
        if missing:
            logger.warning(
                f"Lookup for kind '{kind.value}' returned {len(found)}/{len(reference_ids)} "
                f"references; missing: {missing}"
            )
        return found


# Global instance
reference_resolver = ReferenceResolver(
    session_factory=SessionLocal if settings.RESOLVER_PARALLEL_LOOKUPS else None,
    max_workers=settings.RESOLVER_MAX_WORKERS,
)
