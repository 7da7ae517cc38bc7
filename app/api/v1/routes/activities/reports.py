"""Activity level reporting."""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.response import success_response
from app.core.security import require_roles
from app.db.deps import get_db
from app.models.user import Role, User
from app.services.grading import GradingService
from app.utils.enums import SubmissionStatus

grader_guard = require_roles(Role.admin, Role.teacher)

router = APIRouter(prefix="/activities", tags=["reports"])


@router.get("/{activity_id}/report")
async def get_activity_report(
    activity_id: uuid.UUID,
    status: Optional[SubmissionStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.REPORT_PAGE_LIMIT, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(grader_guard),
):
    report = await GradingService(db).get_activity_report(
        activity_id, status=status, page=page, limit=limit
    )
    return success_response("Activity report retrieved", data=report)
