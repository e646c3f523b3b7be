"""
Course assembly - the learner's view of a course

Combines the authoring tree, resolved references, progress rows and the
access gate into a read-only projection.
"""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from learnpath.config import settings
from learnpath.models import CourseModule, ItemProgress, ItemStatus, ModuleItem, ModuleProgress, ModuleStatus
from learnpath.schemas.content import ResolvedItem
from learnpath.schemas.course_view import CourseView, ItemView, ModuleView
from learnpath.schemas.progress import CourseProgressResponse
from learnpath.services.access_gate import AccessResult, ProgressSnapshot, compute_access
from learnpath.services.authoring import authoring_service
from learnpath.services.cascade import cascade_coordinator
from learnpath.services.course_progress import course_progress_aggregator
from learnpath.services.item_progress import item_progress_store
from learnpath.services.module_progress import module_progress_aggregator
from learnpath.services.resolver import fallback_item, reference_resolver

logger = logging.getLogger(__name__)


def _item_view(
    item: ModuleItem,
    resolved: ResolvedItem,
    row: Optional[ItemProgress],
    access: AccessResult,
) -> ItemView:
    return ItemView(
        id=item.id,
        kind=item.kind,
        reference_id=item.reference_id,
        order=item.order or 0,
        title=resolved.title,
        description=resolved.description,
        kind_fields=resolved.kind_fields,
        missing=resolved.missing,
        is_locked=item.id in access.locked_item_ids,
        is_active=item.id == access.active_item_id,
        status=row.status if row else ItemStatus.NOT_STARTED,
        progress_percentage=(row.progress_percentage or 0.0) if row else 0.0,
        score=row.score if row else None,
        best_score=row.best_score if row else None,
        attempts=(row.attempts or 0) if row else 0,
        time_spent_seconds=(row.time_spent_seconds or 0) if row else 0,
    )


def _module_view(
    module: CourseModule,
    row: Optional[ModuleProgress],
    access: AccessResult,
    items,
) -> ModuleView:
    return ModuleView(
        id=module.id,
        title=module.title,
        description=module.description,
        order=module.order,
        approval_percentage=module.approval_percentage,
        is_locked=module.id in access.locked_module_ids,
        status=row.status if row else ModuleStatus.NOT_STARTED,
        progress_percentage=(row.progress_percentage or 0.0) if row else 0.0,
        score_percentage=(row.score_percentage or 0.0) if row else 0.0,
        items_completed=(row.items_completed or 0) if row else 0,
        total_items=row.total_items if row else len(items),
        items=items,
    )


class CourseAssemblyService:
    """Builds CourseView projections; never mutates authoring entities"""

    def __init__(
        self,
        authoring=None,
        coordinator=None,
        resolver=None,
        item_store=None,
        module_aggregator=None,
        course_aggregator=None,
    ):
        self.authoring = authoring or authoring_service
        self.coordinator = coordinator or cascade_coordinator
        self.resolver = resolver or reference_resolver
        self.item_store = item_store or item_progress_store
        self.module_aggregator = module_aggregator or module_progress_aggregator
        self.course_aggregator = course_aggregator or course_progress_aggregator

    def assemble_course_view(
        self,
        db: Session,
        user_id: UUID,
        course_id: UUID,
        tenant_id: UUID,
    ) -> CourseView:
        """
        Assemble the full course view for a learner

        Progress rows are initialised (and committed) first so the view
        never shows rows that do not exist. Reference resolution is one
        batch for the whole course.

        Raises:
            NotFoundError: course absent, inactive, deleted or of another tenant
        """
        self.coordinator.initialize_course_progress(db, user_id, course_id, tenant_id)

        outline = self.authoring.get_course_with_modules_and_items(db, course_id, tenant_id)
        items = outline.items

        resolved = self.resolver.resolve(db, items, tenant_id)
        item_rows = self.item_store.list_for_items(db, user_id, [item.id for item in items])
        module_rows = self.module_aggregator.list_for_modules(
            db, user_id, [module.id for module in outline.modules]
        )
        course_row = self.course_aggregator.get(db, user_id, course_id)

        snapshot = ProgressSnapshot(
            item_statuses={item_id: row.status for item_id, row in item_rows.items()},
            module_percentages={
                module_id: row.progress_percentage for module_id, row in module_rows.items()
            },
        )
        access = compute_access(
            outline.modules,
            outline.items_by_module,
            snapshot,
            settings.DEFAULT_APPROVAL_PERCENTAGE,
        )

        modules = []
        for module in outline.modules:
            item_views = [
                _item_view(
                    item,
                    resolved.get(item.id) or fallback_item(item),
                    item_rows.get(item.id),
                    access,
                )
                for item in outline.items_by_module.get(module.id, [])
            ]
            modules.append(_module_view(module, module_rows.get(module.id), access, item_views))

        logger.info(
            f"Course view assembled: user={user_id}, course={course_id}, "
            f"modules={len(modules)}, items={len(items)}, locked={len(access.locked_item_ids)}"
        )

        return CourseView(
            id=outline.course.id,
            tenant_id=outline.course.tenant_id,
            title=outline.course.title,
            slug=outline.course.slug,
            progress=CourseProgressResponse.model_validate(course_row),
            active_item_id=access.active_item_id,
            modules=modules,
        )


# Global instance
course_assembly_service = CourseAssemblyService()
