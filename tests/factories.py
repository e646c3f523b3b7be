"""
Builders for course trees used across the tests
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from learnpath.models import (
    Activity,
    Assessment,
    ContentItem,
    Course,
    CourseModule,
    Forum,
    ItemKind,
    ModuleConfig,
    ModuleItem,
    Task,
)


@dataclass
class CourseTree:
    course: Course
    modules: List[CourseModule] = field(default_factory=list)
    items: List[List[ModuleItem]] = field(default_factory=list)

    @property
    def all_items(self) -> List[ModuleItem]:
        return [item for module_items in self.items for item in module_items]


def create_content(db, tenant_id, kind: ItemKind, title: str):
    """Insert a content row of the table that backs the given kind"""
    if kind == ItemKind.CONTENT:
        row = ContentItem(tenant_id=tenant_id, title=title, content_type="video",
                          content_url="https://cdn.example.com/lesson.mp4")
    elif kind == ItemKind.FORUM:
        row = Forum(tenant_id=tenant_id, title=title, description="Discuss")
    elif kind == ItemKind.TASK:
        row = Task(tenant_id=tenant_id, title=title, description="Hand in")
    elif kind in (ItemKind.QUIZ, ItemKind.SURVEY):
        row = Assessment(tenant_id=tenant_id, title=title, assessment_type=kind.value)
    else:
        row = Activity(tenant_id=tenant_id, title=title, activity_type="crossword")
    db.add(row)
    db.flush()
    return row


def add_item(db, module, kind: ItemKind, reference_id: str, order: int) -> ModuleItem:
    item = ModuleItem(module_id=module.id, kind=kind, reference_id=reference_id, order=order)
    db.add(item)
    db.flush()
    return item


def build_course(
    db,
    tenant_id,
    layout: Sequence[Sequence[ItemKind]],
    approval_percentage: Optional[int] = 80,
    title: str = "Course",
) -> CourseTree:
    """
    Create a course with one module per layout entry

    Each entry lists the kinds of the module's items, in order.
    """
    course = Course(tenant_id=tenant_id, title=title, slug=title.lower().replace(" ", "-"))
    db.add(course)
    db.flush()

    tree = CourseTree(course=course)
    for m_index, kinds in enumerate(layout):
        module = CourseModule(course_id=course.id, title=f"Module {m_index + 1}")
        module.configuration = ModuleConfig(
            order=m_index,
            is_active=True,
            approval_percentage=approval_percentage,
        )
        db.add(module)
        db.flush()

        module_items = []
        for i_index, kind in enumerate(kinds):
            content = create_content(db, tenant_id, kind, f"{kind.value} {m_index + 1}.{i_index + 1}")
            module_items.append(add_item(db, module, kind, str(content.id), i_index))

        tree.modules.append(module)
        tree.items.append(module_items)

    db.commit()
    return tree
