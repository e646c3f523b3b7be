"""
Database models package
"""
from learnpath.models.course import Course, CourseModule, ModuleConfig
from learnpath.models.item import ItemKind, ModuleItem
from learnpath.models.content import ContentItem, Forum, Task, Assessment, Activity
from learnpath.models.progress import (
    ItemProgress, ModuleProgress, CourseProgress,
    ItemStatus, ModuleStatus, CourseStatus,
)
from learnpath.models.activity_log import UserActivityLog, ActivityType
from learnpath.models.study_session import StudySession

__all__ = [
    "Course", "CourseModule", "ModuleConfig",
    "ItemKind", "ModuleItem",
    "ContentItem", "Forum", "Task", "Assessment", "Activity",
    "ItemProgress", "ModuleProgress", "CourseProgress",
    "ItemStatus", "ModuleStatus", "CourseStatus",
    "UserActivityLog", "ActivityType",
    "StudySession",
]
