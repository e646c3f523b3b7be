"""
Course-authoring read API

Course, module and item rows are owned by the authoring subsystem; the
engine only reads them through this service.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from learnpath.exceptions import NotFoundError
from learnpath.models import Course, CourseModule, ModuleItem

logger = logging.getLogger(__name__)


def sort_by_order(entities):
    """Order ascending, creation time as the stable tie-break"""
    return sorted(
        entities,
        key=lambda e: (e.order if e.order is not None else 0, e.created_at or datetime.min),
    )


@dataclass
class CourseOutline:
    """A course with its eligible modules and their items, all sorted"""
    course: Course
    modules: List[CourseModule] = field(default_factory=list)
    items_by_module: Dict[UUID, List[ModuleItem]] = field(default_factory=dict)

    @property
    def items(self) -> List[ModuleItem]:
        return [item for module in self.modules for item in self.items_by_module.get(module.id, [])]


class AuthoringService:
    """Read-only access to the course tree"""

    def get_course(self, db: Session, course_id: UUID, tenant_id: Optional[UUID] = None) -> Course:
        query = db.query(Course).filter(
            Course.id == course_id,
            Course.is_active.is_(True),
            Course.deleted_at.is_(None),
        )
        if tenant_id is not None:
            query = query.filter(Course.tenant_id == tenant_id)

        course = query.first()
        if not course:
            raise NotFoundError(f"Course {course_id} not found")
        return course

    def course_exists(self, db: Session, course_id: UUID) -> bool:
        return db.query(Course.id).filter(Course.id == course_id).first() is not None

    def get_course_with_modules_and_items(
        self,
        db: Session,
        course_id: UUID,
        tenant_id: UUID,
    ) -> CourseOutline:
        """
        Load a course tree restricted to active, non-deleted modules

        Two queries regardless of size: one for modules, one for all of
        their items.
        """
        course = self.get_course(db, course_id, tenant_id)
        modules = self.list_eligible_modules(db, course.id)

        items_by_module: Dict[UUID, List[ModuleItem]] = {m.id: [] for m in modules}
        if modules:
            items = db.query(ModuleItem).filter(
                ModuleItem.module_id.in_(list(items_by_module.keys()))
            ).all()
            for item in items:
                items_by_module[item.module_id].append(item)
            for module_id in items_by_module:
                items_by_module[module_id] = sort_by_order(items_by_module[module_id])

        return CourseOutline(course=course, modules=modules, items_by_module=items_by_module)

    def list_eligible_modules(self, db: Session, course_id: UUID) -> List[CourseModule]:
        """Modules that count towards course aggregation, sorted"""
        modules = (
            db.query(CourseModule)
            .filter(
                CourseModule.course_id == course_id,
                CourseModule.deleted_at.is_(None),
            )
            .all()
        )
        return sort_by_order([m for m in modules if m.is_eligible])

    def list_course_module_ids(self, db: Session, course_id: UUID) -> List[UUID]:
        """Every module id of a course, including inactive and deleted ones"""
        rows = db.query(CourseModule.id).filter(CourseModule.course_id == course_id).all()
        return [row[0] for row in rows]

    def get_module(self, db: Session, module_id: UUID) -> CourseModule:
        module = db.query(CourseModule).filter(CourseModule.id == module_id).first()
        if not module:
            raise NotFoundError(f"Module {module_id} not found")
        return module

    def get_item(self, db: Session, item_id: UUID) -> ModuleItem:
        item = db.query(ModuleItem).filter(ModuleItem.id == item_id).first()
        if not item:
            raise NotFoundError(f"Item {item_id} not found")
        return item

    def get_item_parent_module(self, db: Session, item_id: UUID) -> UUID:
        return self.get_item(db, item_id).module_id

    def list_module_items(self, db: Session, module_id: UUID) -> List[ModuleItem]:
        items = db.query(ModuleItem).filter(ModuleItem.module_id == module_id).all()
        return sort_by_order(items)

    def count_items(self, db: Session, module_ids: List[UUID]) -> Dict[UUID, int]:
        counts = {module_id: 0 for module_id in module_ids}
        if not module_ids:
            return counts
        rows = db.query(ModuleItem.module_id).filter(ModuleItem.module_id.in_(module_ids)).all()
        for (module_id,) in rows:
            counts[module_id] += 1
        return counts


# Global instance
authoring_service = AuthoringService()
