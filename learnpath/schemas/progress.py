"""
Pydantic schemas for progress requests and responses
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime

from learnpath.models import ItemStatus, ModuleStatus, CourseStatus, ActivityType
from learnpath.schemas.session import StudySessionResponse


class ItemCompletionData(BaseModel):
    """Data attached to an item completion"""
    score: Optional[float] = Field(None, ge=0.0, le=100.0, description="Score (0-100)")
    time_spent: Optional[int] = Field(None, ge=0, description="Time spent in seconds")
    responses: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None


class CompleteItemRequest(ItemCompletionData):
    """Schema for completing an item"""
    user_id: UUID


class PartialProgressUpdate(BaseModel):
    """Schema for reporting partial progress on an item"""
    user_id: UUID
    progress_percentage: float = Field(..., ge=0.0, le=100.0, description="Reported progress (0-100)")
    time_spent: int = Field(0, ge=0, description="Seconds spent since the last report")


class UserRequest(BaseModel):
    """Schema for operations that only need the acting user"""
    user_id: UUID


class CourseUserRequest(UserRequest):
    tenant_id: UUID


class ItemProgressResponse(BaseModel):
    id: UUID
    item_id: UUID
    status: ItemStatus
    progress_percentage: float
    score: Optional[float] = None
    best_score: Optional[float] = None
    time_spent_seconds: int
    attempts: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ModuleProgressResponse(BaseModel):
    id: UUID
    module_id: UUID
    status: ModuleStatus
    progress_percentage: float
    score_percentage: float
    items_completed: int
    total_items: int
    time_spent_seconds: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CourseProgressResponse(BaseModel):
    id: UUID
    course_id: UUID
    status: CourseStatus
    progress_percentage: float
    score_percentage: float
    total_modules_completed: int
    total_modules: int
    total_items_completed: int
    total_items: int
    total_time_spent: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CascadeResponse(BaseModel):
    """Result of an item -> module -> course cascade"""
    item: ItemProgressResponse
    module: ModuleProgressResponse
    course: CourseProgressResponse
    module_completed_now: bool = False
    course_completed_now: bool = False


class CompletionStats(BaseModel):
    total_items: int
    completed_items: int
    progress_percentage: float
    total_modules: int
    completed_modules: int
    average_score: float


class ProgressSummary(BaseModel):
    """Full progress snapshot of a user in a course"""
    course_progress: CourseProgressResponse
    module_progress: List[ModuleProgressResponse]
    item_progress: List[ItemProgressResponse]
    completion_stats: CompletionStats


class CourseProgressEntry(BaseModel):
    course_id: UUID
    course_title: Optional[str] = None
    course_slug: Optional[str] = None
    status: CourseStatus
    progress_percentage: float
    score_percentage: float
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None


class UserCourseList(BaseModel):
    courses: List[CourseProgressEntry]
    total_courses: int
    completed_courses: int
    in_progress_courses: int


class ModuleStats(BaseModel):
    """Per-module statistics for a user"""
    module_id: UUID
    module_title: Optional[str] = None
    status: ModuleStatus
    progress_percentage: float
    score_percentage: float
    time_spent_seconds: int
    items_completed: int
    total_items: int
    average_item_score: float
    strongest_areas: List[str]
    weakest_areas: List[str]


class ModuleAccessCheck(BaseModel):
    module_id: UUID
    can_access: bool
    reason: Optional[str] = None
    prerequisites: List[UUID] = Field(default_factory=list)
    module_title: Optional[str] = None
    status: ModuleStatus
    progress_percentage: float


class ActivityLogEntry(BaseModel):
    id: UUID
    activity_type: ActivityType
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ActivityLogPage(BaseModel):
    data: List[ActivityLogEntry]
    total: int


class DashboardSummary(BaseModel):
    total_courses: int
    completed_courses: int
    in_progress_courses: int
    total_study_time: int
    average_score: float


class UserDashboard(BaseModel):
    summary: DashboardSummary
    recent_activity: List[ActivityLogEntry]
    current_sessions: List[StudySessionResponse]
