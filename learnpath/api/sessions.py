"""
Study session API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from uuid import UUID
import logging
from typing import List, Optional

from learnpath.database import get_db
from learnpath.exceptions import LearnPathError
from learnpath.schemas.progress import UserRequest
from learnpath.schemas.session import StudySessionResponse, StudySessionStart, StudyTimeStats
from learnpath.services.session_service import session_service

router = APIRouter(prefix="/api/sessions", tags=["sessions"])
logger = logging.getLogger(__name__)


@router.post("/start", response_model=StudySessionResponse, status_code=201)
async def start_session(
    payload: StudySessionStart,
    request: Request,
    db: Session = Depends(get_db)
):
    """Open a study session; any other open session of the user is ended first"""

    try:
        session = session_service.start_session(
            db,
            payload.user_id,
            course_id=payload.course_id,
            module_id=payload.module_id,
            item_id=payload.item_id,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
        db.commit()
        db.refresh(session)

        logger.info(f"Study session started: {session.id} (user {payload.user_id})")

        return StudySessionResponse.model_validate(session)

    except Exception as e:
        logger.error(f"Failed to start session: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to start session: {str(e)}")


@router.put("/end-all")
async def end_all_sessions(
    request: UserRequest,
    db: Session = Depends(get_db)
):
    """End every open session of the user"""

    try:
        ended = session_service.end_all_sessions(db, request.user_id)
        db.commit()
        return {"ended_sessions": ended}

    except Exception as e:
        logger.error(f"Failed to end sessions: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to end sessions: {str(e)}")


@router.put("/{session_id}/end", response_model=StudySessionResponse)
async def end_session(
    session_id: UUID,
    request: UserRequest,
    db: Session = Depends(get_db)
):
    """End one session and record its duration"""

    try:
        session = session_service.end_session(db, session_id, request.user_id)
        db.commit()
        db.refresh(session)
        return StudySessionResponse.model_validate(session)

    except (HTTPException, LearnPathError):
        db.rollback()
        raise
    except Exception as e:
        logger.error(f"Failed to end session: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to end session: {str(e)}")


@router.get("/active", response_model=List[StudySessionResponse])
async def get_active_sessions(
    user_id: UUID = Query(...),
    db: Session = Depends(get_db)
):
    try:
        sessions = session_service.get_active_sessions(db, user_id)
        return [StudySessionResponse.model_validate(s) for s in sessions]

    except Exception as e:
        logger.error(f"Failed to fetch active sessions: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch sessions: {str(e)}")


@router.get("/study-time-stats", response_model=StudyTimeStats)
async def get_study_time_stats(
    user_id: UUID = Query(...),
    course_id: Optional[UUID] = Query(None),
    days: Optional[int] = Query(None, ge=1, le=365),
    db: Session = Depends(get_db)
):
    """Total, average and per-module study time of finished sessions"""

    try:
        stats = session_service.get_study_time_stats(db, user_id, course_id=course_id, days=days)
        return StudyTimeStats(**stats)

    except Exception as e:
        logger.error(f"Failed to fetch study time stats: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch study time stats: {str(e)}")
