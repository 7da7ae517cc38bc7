from app.services.grading.aggregator import SubmissionTotals, recalculate_submission_score
from app.services.grading.grading_service import GradingService
from app.services.grading.response_grader import GradingResult, grade_response
from app.services.grading.score_ledger import ScoreData, ScoreLedger
from app.services.grading.scoring_config import ScoringConfigService

__all__ = [
    "GradingResult",
    "GradingService",
    "ScoreData",
    "ScoreLedger",
    "ScoringConfigService",
    "SubmissionTotals",
    "grade_response",
    "recalculate_submission_score",
]
