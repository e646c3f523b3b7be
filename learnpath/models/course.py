"""
Course authoring models - Course, CourseModule and ModuleConfig
"""
from sqlalchemy import Column, String, Integer, Boolean, Text, TIMESTAMP, ForeignKey, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from learnpath.config import settings
from learnpath.database import Base, utcnow
from learnpath.models.types import JSONType
import uuid


class Course(Base):
    """
    Courses table - root of the Course -> Module -> Item tree
    """
    __tablename__ = "courses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    title = Column(String(255))
    slug = Column(String(255), index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(TIMESTAMP, default=utcnow, server_default=func.now())
    deleted_at = Column(TIMESTAMP, nullable=True)

    def __repr__(self):
        return f"<Course(id={self.id}, title={self.title})>"


class CourseModule(Base):
    """
    Course modules table - ordered children of a course
    """
    __tablename__ = "course_modules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    course_id = Column(UUID(as_uuid=True), ForeignKey("courses.id"), nullable=False, index=True)
    title = Column(String(255))
    description = Column(Text)
    created_at = Column(TIMESTAMP, default=utcnow, server_default=func.now())
    deleted_at = Column(TIMESTAMP, nullable=True)

    configuration = relationship(
        "ModuleConfig",
        uselist=False,
        lazy="joined",
        back_populates="module",
    )

    @property
    def order(self) -> int:
        if self.configuration is None:
            return 0
        return self.configuration.order or 0

    @property
    def approval_percentage(self) -> int:
        if self.configuration is None or self.configuration.approval_percentage is None:
            return settings.DEFAULT_APPROVAL_PERCENTAGE
        return self.configuration.approval_percentage

    @property
    def is_eligible(self) -> bool:
        """Counts towards course aggregation"""
        if self.deleted_at is not None:
            return False
        if self.configuration is None:
            return True
        return bool(self.configuration.is_active) and self.configuration.deleted_at is None

    def __repr__(self):
        return f"<CourseModule(id={self.id}, course_id={self.course_id}, title={self.title})>"


class ModuleConfig(Base):
    """
    Module configuration - activation, ordering and approval threshold
    """
    __tablename__ = "course_module_configs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    module_id = Column(
        UUID(as_uuid=True),
        ForeignKey("course_modules.id"),
        nullable=False,
        unique=True,
    )
    is_active = Column(Boolean, default=True, nullable=False)
    order = Column(Integer, default=0, nullable=False)
    approval_percentage = Column(Integer, default=80, nullable=False)  # 0-100
    metadata_ = Column("metadata", JSONType, default=dict)
    created_at = Column(TIMESTAMP, default=utcnow, server_default=func.now())
    deleted_at = Column(TIMESTAMP, nullable=True)

    module = relationship("CourseModule", back_populates="configuration")

    def __repr__(self):
        return f"<ModuleConfig(module_id={self.module_id}, order={self.order}, approval={self.approval_percentage})>"
