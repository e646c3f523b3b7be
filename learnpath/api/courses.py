"""
Course view API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from uuid import UUID
import logging

from learnpath.database import get_db
from learnpath.exceptions import LearnPathError
from learnpath.schemas.course_view import CourseView
from learnpath.services.course_view import course_assembly_service

router = APIRouter(prefix="/api/courses", tags=["courses"])
logger = logging.getLogger(__name__)


@router.get("/{course_id}/view", response_model=CourseView)
async def get_course_view(
    course_id: UUID,
    user_id: UUID = Query(...),
    tenant_id: UUID = Query(...),
    db: Session = Depends(get_db)
):
    """
    Learner view of a course

    Returns modules and items in order with:
    - Resolved titles and kind-specific fields (fallbacks for missing references)
    - Per-user status, progress and scores
    - Lock flags and the item to continue with
    """

    try:
        logger.info(f"Assembling course view: course={course_id}, user={user_id}")

        return course_assembly_service.assemble_course_view(db, user_id, course_id, tenant_id)

    except (HTTPException, LearnPathError):
        raise
    except Exception as e:
        logger.error(f"Failed to assemble course view: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to load course: {str(e)}")
