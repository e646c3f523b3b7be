"""
Content subsystem tables referenced by module items

Owned by the content subsystems; the engine only reads display fields.
"""
from sqlalchemy import Column, String, Text, TIMESTAMP, func
from sqlalchemy.dialects.postgresql import UUID
from learnpath.database import Base, utcnow
import uuid


class ContentItem(Base):
    """Lesson content (video, document, embed, ...)"""
    __tablename__ = "contents"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    title = Column(String(255))
    description = Column(Text)
    content_type = Column(String(20))  # video | image | document | embed | scorm
    content_url = Column(String(1024))
    created_at = Column(TIMESTAMP, default=utcnow, server_default=func.now())
    deleted_at = Column(TIMESTAMP, nullable=True)


class Forum(Base):
    __tablename__ = "forums"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    title = Column(String(255))
    description = Column(Text)
    start_date = Column(TIMESTAMP, nullable=True)
    end_date = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, default=utcnow, server_default=func.now())
    deleted_at = Column(TIMESTAMP, nullable=True)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    title = Column(String(255))
    description = Column(Text)
    start_date = Column(TIMESTAMP, nullable=True)
    end_date = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, default=utcnow, server_default=func.now())
    deleted_at = Column(TIMESTAMP, nullable=True)


class Assessment(Base):
    """Quizzes and surveys share this table"""
    __tablename__ = "assessments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    title = Column(String(255))
    description = Column(Text)
    assessment_type = Column(String(20), default="evaluation")  # evaluation | quiz | survey
    created_at = Column(TIMESTAMP, default=utcnow, server_default=func.now())
    deleted_at = Column(TIMESTAMP, nullable=True)


class Activity(Base):
    """Games and interactive activities"""
    __tablename__ = "activities"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    title = Column(String(255))
    description = Column(Text)
    activity_type = Column(String(30))  # crossword | hanging | word_search | complete_phrase
    created_at = Column(TIMESTAMP, default=utcnow, server_default=func.now())
    deleted_at = Column(TIMESTAMP, nullable=True)
