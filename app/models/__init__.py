# app/models/__init__.py

from .user import User
from .activity import Activity, ActivityElement
from .question import Question, QuestionScoring
from .submission import Submission, SubmissionAnswer
from .question_score import QuestionScore

__all__ = [
    "User",
    "Activity",
    "ActivityElement",
    "Question",
    "QuestionScoring",
    "Submission",
    "SubmissionAnswer",
    "QuestionScore",
]
