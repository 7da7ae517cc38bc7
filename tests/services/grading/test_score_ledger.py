from __future__ import annotations

import pytest
from sqlalchemy import select

from app.core.exceptions import GradingValidationError
from app.models.question_score import QuestionScore
from app.services.grading.score_ledger import ScoreData, ScoreLedger
from app.utils.enums import AnswerStatus

pytestmark = pytest.mark.anyio


async def _seed_answer(seed, status=AnswerStatus.submitted):
    student = await seed.user()
    activity = await seed.activity()
    question = await seed.question(activity)
    submission = await seed.submission(student, activity)
    answer = await seed.answer(submission, question, {"answer": "Paris"}, status=status)
    return submission, answer


async def test_versions_are_sequential_with_one_current(db_session, seed):
    _, answer = await _seed_answer(seed)
    ledger = ScoreLedger(db_session)

    for score in (1.0, 2.0, 3.0):
        await ledger.record_score(answer, ScoreData(score=score, max_score=5.0), "teacher-1")

    history = await ledger.history(answer.id)
    assert [record.version for record in history] == [3, 2, 1]
    assert [record.is_current for record in history] == [True, False, False]

    current = await ledger.current_score(answer.id)
    assert current.version == 3
    assert current.score == 3.0
    assert current.graded_by == "teacher-1"


async def test_record_copies_answer_references(db_session, seed):
    submission, answer = await _seed_answer(seed)
    record = await ScoreLedger(db_session).record_score(
        answer,
        ScoreData(score=1.0, max_score=1.0, feedback="Correct", auto_graded=True),
        "auto-grader",
    )
    assert record.submission_id == submission.id
    assert record.question_id == answer.question_id
    assert record.auto_graded is True
    assert record.feedback == "Correct"


@pytest.mark.parametrize("score, max_score", [(6.0, 5.0), (-1.0, 5.0), (float("inf"), 5.0)])
async def test_out_of_range_scores_are_rejected(db_session, seed, score, max_score):
    _, answer = await _seed_answer(seed)

    with pytest.raises(GradingValidationError):
        await ScoreLedger(db_session).record_score(
            answer, ScoreData(score=score, max_score=max_score), "teacher-1"
        )

    rows = (await db_session.execute(select(QuestionScore))).scalars().all()
    assert rows == []


async def test_current_scores_skip_archived_answers(db_session, seed):
    submission, answer = await _seed_answer(seed)
    question = await seed.question()
    archived = await seed.answer(submission, question, {"answer": "x"}, status=AnswerStatus.archived)
    ledger = ScoreLedger(db_session)

    await ledger.record_score(answer, ScoreData(score=1.0, max_score=1.0), "teacher-1")
    await ledger.record_score(archived, ScoreData(score=1.0, max_score=1.0), "teacher-1")

    current = await ledger.current_scores_for_submission(submission.id)
    assert [record.answer_id for record in current] == [answer.id]
