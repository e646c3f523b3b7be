"""
Pydantic schemas for resolved content references
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from uuid import UUID

from learnpath.models.item import ItemKind


class ContentSummary(BaseModel):
    """Display fields returned by a per-kind content lookup"""
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    kind_fields: Dict[str, Any] = Field(default_factory=dict)


class ResolvedItem(BaseModel):
    """A module item with its reference turned into display data (request scoped)"""
    item_id: UUID
    module_id: UUID
    kind: ItemKind
    reference_id: str
    order: int
    title: str
    description: Optional[str] = None
    kind_fields: Dict[str, Any] = Field(default_factory=dict)
    missing: bool = False
