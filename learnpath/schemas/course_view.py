"""
Pydantic schemas for the assembled course view

Read-only projection built per request; authoring entities are never
mutated to carry progress or lock flags.
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from uuid import UUID

from learnpath.models import ItemKind, ItemStatus, ModuleStatus
from learnpath.schemas.progress import CourseProgressResponse


class ItemView(BaseModel):
    id: UUID
    kind: ItemKind
    reference_id: str
    order: int
    title: str
    description: Optional[str] = None
    kind_fields: Dict[str, Any] = Field(default_factory=dict)
    missing: bool = False
    is_locked: bool
    is_active: bool
    status: ItemStatus
    progress_percentage: float
    score: Optional[float] = None
    best_score: Optional[float] = None
    attempts: int = 0
    time_spent_seconds: int = 0


class ModuleView(BaseModel):
    id: UUID
    title: Optional[str] = None
    description: Optional[str] = None
    order: int
    approval_percentage: int
    is_locked: bool
    status: ModuleStatus
    progress_percentage: float
    score_percentage: float
    items_completed: int
    total_items: int
    items: List[ItemView]


class CourseView(BaseModel):
    id: UUID
    tenant_id: UUID
    title: Optional[str] = None
    slug: Optional[str] = None
    progress: CourseProgressResponse
    active_item_id: Optional[UUID] = None
    modules: List[ModuleView]
