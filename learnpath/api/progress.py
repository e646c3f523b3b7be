"""
Learner progress API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from uuid import UUID
import logging
from typing import List, Optional

from learnpath.database import get_db
from learnpath.exceptions import LearnPathError
from learnpath.models import ActivityType
from learnpath.schemas.progress import (
    ActivityLogPage, CascadeResponse, CompleteItemRequest, CourseProgressResponse,
    CourseUserRequest, ItemCompletionData, ModuleAccessCheck, ModuleStats,
    PartialProgressUpdate, ProgressSummary, UserCourseList, UserDashboard, UserRequest
)
from learnpath.services.activity_service import activity_service
from learnpath.services.cascade import cascade_coordinator
from learnpath.services.progress_report_service import progress_report_service

router = APIRouter(prefix="/api/progress", tags=["progress"])
logger = logging.getLogger(__name__)


@router.post("/courses/{course_id}/initialize", response_model=CourseProgressResponse, status_code=201)
async def initialize_course_progress(
    course_id: UUID,
    request: CourseUserRequest,
    db: Session = Depends(get_db)
):
    """
    Create not-started progress rows for the course, its modules and items

    Safe to call repeatedly; existing rows are kept.
    """

    try:
        progress = cascade_coordinator.initialize_course_progress(
            db, request.user_id, course_id, request.tenant_id
        )
        return CourseProgressResponse.model_validate(progress)

    except (HTTPException, LearnPathError):
        raise
    except Exception as e:
        logger.error(f"Failed to initialize course progress: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to initialize progress: {str(e)}")


@router.get("/courses/{course_id}/summary", response_model=ProgressSummary)
async def get_progress_summary(
    course_id: UUID,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db)
):
    """
    Progress snapshot of a user in a course

    Returns:
    - Course progress row
    - Module and item progress rows in course order
    - Completion statistics
    """

    try:
        summary = progress_report_service.get_progress_summary(db, user_id, course_id)
        return ProgressSummary.model_validate(summary, from_attributes=True)

    except (HTTPException, LearnPathError):
        raise
    except Exception as e:
        logger.error(f"Failed to fetch progress summary: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch progress summary: {str(e)}")


@router.post("/courses/{course_id}/reset", status_code=204)
async def reset_course_progress(
    course_id: UUID,
    request: UserRequest,
    db: Session = Depends(get_db)
):
    """Delete all progress of the user in the course"""

    try:
        cascade_coordinator.reset_course_progress(db, request.user_id, course_id)

    except (HTTPException, LearnPathError):
        raise
    except Exception as e:
        logger.error(f"Failed to reset course progress: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to reset progress: {str(e)}")


@router.get("/courses", response_model=UserCourseList)
async def get_user_courses(
    user_id: UUID = Query(...),
    db: Session = Depends(get_db)
):
    """All courses the user has progress in"""

    try:
        return UserCourseList(**progress_report_service.get_user_courses(db, user_id))

    except Exception as e:
        logger.error(f"Failed to fetch user courses: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch courses: {str(e)}")


@router.get("/courses/{course_id}/module-stats", response_model=List[ModuleStats])
async def get_module_stats(
    course_id: UUID,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db)
):
    """Per-module statistics, including strongest and weakest item kinds"""

    try:
        stats = progress_report_service.get_module_stats(db, user_id, course_id)
        return [ModuleStats(**entry) for entry in stats]

    except Exception as e:
        logger.error(f"Failed to fetch module stats: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch module stats: {str(e)}")


@router.get("/modules/{module_id}/access-check", response_model=ModuleAccessCheck)
async def check_module_access(
    module_id: UUID,
    user_id: UUID = Query(...),
    tenant_id: UUID = Query(...),
    db: Session = Depends(get_db)
):
    """Whether the user may open the module"""

    try:
        return ModuleAccessCheck(
            **progress_report_service.check_module_access(db, user_id, module_id, tenant_id)
        )

    except (HTTPException, LearnPathError):
        raise
    except Exception as e:
        logger.error(f"Failed to check module access: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to check module access: {str(e)}")


@router.post("/items/{item_id}/start", response_model=CascadeResponse)
async def start_item(
    item_id: UUID,
    request: UserRequest,
    db: Session = Depends(get_db)
):
    """Mark an item as opened and refresh module and course progress"""

    try:
        result = cascade_coordinator.on_item_started(db, request.user_id, item_id)
        return CascadeResponse.model_validate(result, from_attributes=True)

    except (HTTPException, LearnPathError):
        raise
    except Exception as e:
        logger.error(f"Failed to start item: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to start item: {str(e)}")


@router.put("/items/{item_id}/progress", response_model=CascadeResponse)
async def update_item_progress(
    item_id: UUID,
    update: PartialProgressUpdate,
    db: Session = Depends(get_db)
):
    """
    Report partial progress on an item

    - Lower percentages than the stored one are ignored
    - Time is accumulated
    - Items auto-complete at the configured threshold
    """

    try:
        result = cascade_coordinator.on_item_partial_progress(
            db, update.user_id, item_id, update.progress_percentage, update.time_spent
        )
        return CascadeResponse.model_validate(result, from_attributes=True)

    except (HTTPException, LearnPathError):
        raise
    except Exception as e:
        logger.error(f"Failed to update item progress: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to update progress: {str(e)}")


@router.put("/items/{item_id}/complete", response_model=CascadeResponse)
async def complete_item(
    item_id: UUID,
    request: CompleteItemRequest,
    db: Session = Depends(get_db)
):
    """
    Complete an item and cascade to module and course

    Returns the updated item, module and course rows plus whether the
    module or course became completed with this call.
    """

    try:
        data = ItemCompletionData(
            score=request.score,
            time_spent=request.time_spent,
            responses=request.responses,
            metadata=request.metadata,
        )
        result = cascade_coordinator.on_item_completed(db, request.user_id, item_id, data)
        return CascadeResponse.model_validate(result, from_attributes=True)

    except (HTTPException, LearnPathError):
        raise
    except Exception as e:
        logger.error(f"Failed to complete item: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to complete item: {str(e)}")


@router.get("/dashboard", response_model=UserDashboard)
async def get_dashboard(
    user_id: UUID = Query(...),
    db: Session = Depends(get_db)
):
    """Course totals, study time, average score, recent activity and open sessions"""

    try:
        dashboard = progress_report_service.get_user_dashboard(db, user_id)
        return UserDashboard.model_validate(dashboard, from_attributes=True)

    except Exception as e:
        logger.error(f"Failed to fetch dashboard: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch dashboard: {str(e)}")


@router.get("/activity-log", response_model=ActivityLogPage)
async def get_activity_log(
    user_id: UUID = Query(...),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    activity_type: Optional[ActivityType] = Query(None),
    reference_id: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Activity history of the user, newest first"""

    try:
        entries, total = activity_service.get_activity_log(
            db, user_id, limit=limit, offset=offset,
            activity_type=activity_type, reference_id=reference_id
        )
        return ActivityLogPage.model_validate({"data": entries, "total": total}, from_attributes=True)

    except Exception as e:
        logger.error(f"Failed to fetch activity log: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch activity log: {str(e)}")
