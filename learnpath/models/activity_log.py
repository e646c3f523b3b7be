"""
UserActivityLog model - learner facts (started, completed, reset)
"""
from sqlalchemy import Column, String, TIMESTAMP, Enum, Index, func
from sqlalchemy.dialects.postgresql import UUID
from learnpath.database import Base, utcnow
from learnpath.models.types import JSONType
import enum
import uuid


class ActivityType(str, enum.Enum):
    COURSE_STARTED = "course_started"
    ITEM_STARTED = "item_started"
    ITEM_COMPLETED = "item_completed"
    MODULE_COMPLETED = "module_completed"
    COURSE_COMPLETED = "course_completed"
    COURSE_RESET = "course_reset"


class UserActivityLog(Base):
    """
    Activity log table - append only
    """
    __tablename__ = "user_activity_logs"
    __table_args__ = (
        Index("ix_user_activity_logs_user_created", "user_id", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    activity_type = Column(
        Enum(ActivityType, name="activity_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    reference_id = Column(String(64), index=True)
    reference_type = Column(String(20))  # item | module | course
    details = Column(JSONType, default=dict)
    created_at = Column(TIMESTAMP, default=utcnow, server_default=func.now())

    def __repr__(self):
        return f"<UserActivityLog(user_id={self.user_id}, type={self.activity_type}, ref={self.reference_id})>"
