"""
ModuleItem model - polymorphic pointer into a content subsystem
"""
from sqlalchemy import Column, String, Integer, TIMESTAMP, ForeignKey, Enum, func
from sqlalchemy.dialects.postgresql import UUID
from learnpath.database import Base, utcnow
import enum
import uuid


class ItemKind(str, enum.Enum):
    """Closed set of content kinds an item may point to"""
    CONTENT = "content"
    FORUM = "forum"
    TASK = "task"
    QUIZ = "quiz"
    SURVEY = "survey"
    ACTIVITY = "activity"


class ModuleItem(Base):
    """
    Module items table - ordered leaves of a module
    """
    __tablename__ = "module_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    module_id = Column(UUID(as_uuid=True), ForeignKey("course_modules.id"), nullable=False, index=True)
    kind = Column(
        Enum(ItemKind, name="module_item_kind", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    reference_id = Column(String(64), nullable=False, index=True)  # opaque id in the owning subsystem
    order = Column(Integer, default=0, nullable=False)
    created_at = Column(TIMESTAMP, default=utcnow, server_default=func.now())

    def __repr__(self):
        return f"<ModuleItem(id={self.id}, kind={self.kind}, reference_id={self.reference_id})>"
