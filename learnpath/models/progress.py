"""
Per-user progress ledger - item, module and course levels
"""
from sqlalchemy import (
    Column, Integer, TIMESTAMP, Numeric, ForeignKey, Enum, UniqueConstraint, Index, func
)
from sqlalchemy.dialects.postgresql import UUID
from learnpath.database import Base, utcnow
from learnpath.models.types import JSONType
import enum
import uuid


class ItemStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class ModuleStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class CourseStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    FAILED = "failed"


def _enum(enum_cls, name):
    return Enum(enum_cls, name=name, values_callable=lambda e: [m.value for m in e])


# Percentages are stored as DECIMAL(5,2) but handled as floats
Percentage = Numeric(5, 2, asdecimal=False)


class ItemProgress(Base):
    """
    User item progress - one row per (user, item), created lazily
    """
    __tablename__ = "user_item_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_user_item_progress"),
        Index("ix_user_item_progress_user_status", "user_id", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    item_id = Column(UUID(as_uuid=True), ForeignKey("module_items.id"), nullable=False, index=True)
    status = Column(_enum(ItemStatus, "item_progress_status"), default=ItemStatus.NOT_STARTED, nullable=False)
    progress_percentage = Column(Percentage, default=0.0, nullable=False)  # 0-100, never decreases
    score = Column(Percentage, nullable=True)
    best_score = Column(Percentage, nullable=True)
    time_spent_seconds = Column(Integer, default=0, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    responses = Column(JSONType, default=dict)
    metadata_ = Column("metadata", JSONType, default=dict)
    started_at = Column(TIMESTAMP, nullable=True)
    completed_at = Column(TIMESTAMP, nullable=True)
    last_accessed_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, default=utcnow, server_default=func.now())
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    @property
    def is_completed(self) -> bool:
        return self.status == ItemStatus.COMPLETED

    def __repr__(self):
        return f"<ItemProgress(user_id={self.user_id}, item_id={self.item_id}, status={self.status})>"


class ModuleProgress(Base):
    """
    User module progress - aggregate recomputed from item rows
    """
    __tablename__ = "user_module_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "module_id", name="uq_user_module_progress"),
        Index("ix_user_module_progress_user_status", "user_id", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    module_id = Column(UUID(as_uuid=True), ForeignKey("course_modules.id"), nullable=False, index=True)
    status = Column(_enum(ModuleStatus, "module_progress_status"), default=ModuleStatus.NOT_STARTED, nullable=False)
    progress_percentage = Column(Percentage, default=0.0, nullable=False)
    score_percentage = Column(Percentage, default=0.0, nullable=False)
    items_completed = Column(Integer, default=0, nullable=False)
    total_items = Column(Integer, default=0, nullable=False)
    time_spent_seconds = Column(Integer, default=0, nullable=False)
    started_at = Column(TIMESTAMP, nullable=True)
    completed_at = Column(TIMESTAMP, nullable=True)
    last_accessed_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, default=utcnow, server_default=func.now())
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    @property
    def is_completed(self) -> bool:
        return self.status == ModuleStatus.COMPLETED

    def __repr__(self):
        return f"<ModuleProgress(user_id={self.user_id}, module_id={self.module_id}, status={self.status})>"


class CourseProgress(Base):
    """
    User course progress - aggregate recomputed from module rows
    """
    __tablename__ = "user_course_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_user_course_progress"),
        Index("ix_user_course_progress_user_status", "user_id", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    course_id = Column(UUID(as_uuid=True), ForeignKey("courses.id"), nullable=False, index=True)
    status = Column(_enum(CourseStatus, "course_progress_status"), default=CourseStatus.NOT_STARTED, nullable=False)
    progress_percentage = Column(Percentage, default=0.0, nullable=False)
    score_percentage = Column(Percentage, default=0.0, nullable=False)
    total_modules_completed = Column(Integer, default=0, nullable=False)
    total_modules = Column(Integer, default=0, nullable=False)
    total_items_completed = Column(Integer, default=0, nullable=False)
    total_items = Column(Integer, default=0, nullable=False)
    total_time_spent = Column(Integer, default=0, nullable=False)  # seconds
    metadata_ = Column("metadata", JSONType, default=dict)
    started_at = Column(TIMESTAMP, nullable=True)
    completed_at = Column(TIMESTAMP, nullable=True)
    last_accessed_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, default=utcnow, server_default=func.now())
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    @property
    def is_completed(self) -> bool:
        return self.status == CourseStatus.COMPLETED

    def __repr__(self):
        return f"<CourseProgress(user_id={self.user_id}, course_id={self.course_id}, status={self.status})>"
