"""
Pydantic schemas for study sessions
"""
from pydantic import BaseModel, Field
from typing import Dict, Optional
from uuid import UUID
from datetime import datetime


class StudySessionStart(BaseModel):
    """Schema for opening a study session"""
    user_id: UUID
    course_id: Optional[UUID] = None
    module_id: Optional[UUID] = None
    item_id: Optional[UUID] = None


class StudySessionResponse(BaseModel):
    id: UUID
    user_id: UUID
    course_id: Optional[UUID] = None
    module_id: Optional[UUID] = None
    item_id: Optional[UUID] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_seconds: int
    is_active: bool

    class Config:
        from_attributes = True


class StudyTimeStats(BaseModel):
    total_time: int
    average_session_time: float
    total_sessions: int
    time_by_module: Dict[str, int] = Field(default_factory=dict)
