"""
StudySession model - time a learner spends inside a course
"""
from sqlalchemy import Column, String, Integer, Boolean, TIMESTAMP, Index
from sqlalchemy.dialects.postgresql import UUID
from learnpath.database import Base, utcnow
import uuid


class StudySession(Base):
    """
    Study sessions table - at most one active session per user
    """
    __tablename__ = "user_study_sessions"
    __table_args__ = (
        Index("ix_user_study_sessions_user_active", "user_id", "is_active"),
        Index("ix_user_study_sessions_course_active", "course_id", "is_active"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    course_id = Column(UUID(as_uuid=True), nullable=True)
    module_id = Column(UUID(as_uuid=True), nullable=True)
    item_id = Column(UUID(as_uuid=True), nullable=True)
    start_time = Column(TIMESTAMP, nullable=False, default=utcnow)
    end_time = Column(TIMESTAMP, nullable=True)
    duration_seconds = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    ip_address = Column(String(45))
    user_agent = Column(String(512))

    def end(self, now=None):
        """Close the session and compute its duration"""
        self.end_time = now or utcnow()
        self.is_active = False
        self.duration_seconds = max(int((self.end_time - self.start_time).total_seconds()), 0)

    def __repr__(self):
        return f"<StudySession(user_id={self.user_id}, course_id={self.course_id}, active={self.is_active})>"
