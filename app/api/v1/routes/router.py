# Main Router - app/api/v1/router.py
from fastapi import APIRouter
from app.api.v1.routes.question_scoring.question_scoring import router as question_scoring_router
from app.api.v1.routes.submissions.grading import router as grading_router
from app.api.v1.routes.activities.reports import router as reports_router

router = APIRouter()

# Every route authenticates through its own role guard
router.include_router(question_scoring_router)
router.include_router(grading_router)
router.include_router(reports_router)
