from __future__ import annotations

import uuid

import pytest

from app.models.user import Role
from app.utils.enums import ScoringType, SubmissionStatus

pytestmark = pytest.mark.anyio


async def seed_submission(seed, student, status=SubmissionStatus.submitted):
    activity = await seed.activity()
    auto_q = await seed.question(activity, title="Capital", order_index=0)
    manual_q = await seed.question(activity, title="Essay", order_index=1)
    await seed.scoring(auto_q, {"answer": "Paris"})
    await seed.scoring(manual_q, None, scoring_type=ScoringType.manual)
    submission = await seed.submission(student, activity, status=status)
    auto_answer = await seed.answer(submission, auto_q, {"answer": "Paris"})
    manual_answer = await seed.answer(submission, manual_q, {"answer": "Long text"})
    return activity, submission, auto_answer, manual_answer


async def test_auto_grade_submission_route(client, seed, student):
    _, submission, _, _ = await seed_submission(seed, student)

    response = await client.post(f"/api/v1/submissions/{submission.id}/auto-grade")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["auto_graded_count"] == 1
    assert body["data"]["manual_grading_required"] == 1
    assert body["data"]["final_score"]["status"] == "submitted"


async def test_auto_grade_answer_flags_manual_questions(client, seed, student):
    _, submission, _, manual_answer = await seed_submission(seed, student)

    response = await client.post(
        f"/api/v1/submissions/{submission.id}/answers/{manual_answer.id}/auto-grade"
    )

    assert response.status_code == 200
    body = response.json()
    assert body["msg"] == "Question requires manual grading"
    assert body["data"]["requires_manual_grading"] is True


async def test_auto_grade_answer_of_other_submission_is_404(client, seed, student):
    _, submission, _, _ = await seed_submission(seed, student)
    _, _, other_answer, _ = await seed_submission(seed, student)

    response = await client.post(
        f"/api/v1/submissions/{submission.id}/answers/{other_answer.id}/auto-grade"
    )

    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"


async def test_auto_grade_in_progress_submission_is_rejected(client, seed, student):
    _, submission, _, _ = await seed_submission(seed, student, status=SubmissionStatus.in_progress)

    response = await client.post(f"/api/v1/submissions/{submission.id}/auto-grade")

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "error"
    assert body["error_code"] == "VALIDATION_ERROR"


async def test_manual_grade_then_regrade(client, seed, student):
    _, submission, auto_answer, manual_answer = await seed_submission(seed, student)
    await client.post(f"/api/v1/submissions/{submission.id}/auto-grade")
    url = f"/api/v1/submissions/{submission.id}/answers/{manual_answer.id}/grade"

    graded = await client.post(url, json={"score": 3, "max_score": 5, "feedback": "Solid"})
    assert graded.status_code == 200
    assert graded.json()["data"]["submission_totals"]["status"] == "graded"

    regraded = await client.put(url, json={"score": 4})
    assert regraded.status_code == 200
    assert regraded.json()["data"]["score"]["version"] == 2
    assert regraded.json()["data"]["score"]["feedback"] == "Solid"

    history = await client.get(
        f"/api/v1/submissions/{submission.id}/answers/{manual_answer.id}/scores"
    )
    assert [entry["version"] for entry in history.json()["data"]] == [2, 1]

    summary = await client.get(f"/api/v1/submissions/{submission.id}/scores")
    assert summary.json()["data"]["scores"]["total"] == 5.0
    assert summary.json()["data"]["submission"]["status"] == "graded"


async def test_auto_grade_answer_records_the_requesting_grader(client, seed, student, teacher):
    _, submission, auto_answer, _ = await seed_submission(seed, student)

    response = await client.post(
        f"/api/v1/submissions/{submission.id}/answers/{auto_answer.id}/auto-grade"
    )

    assert response.status_code == 200
    score = response.json()["data"]["score"]
    assert score["graded_by"] == str(teacher.id)
    assert score["is_auto_graded"] is True


async def test_grading_bodies_accept_camel_case(client, seed, student):
    _, submission, auto_answer, manual_answer = await seed_submission(seed, student)
    url = f"/api/v1/submissions/{submission.id}/answers/{manual_answer.id}/grade"

    graded = await client.post(
        url, json={"score": 3, "maxScore": 5, "criteriaScores": {"clarity": 2, "depth": 1}}
    )
    assert graded.status_code == 200
    assert graded.json()["data"]["score"]["max_score"] == 5.0
    assert graded.json()["data"]["score"]["criteria_scores"] == {"clarity": 2, "depth": 1}

    regraded = await client.put(url, json={"score": 4, "maxScore": 5})
    assert regraded.status_code == 200
    assert regraded.json()["data"]["score"]["version"] == 2

    batch = await client.post(
        f"/api/v1/submissions/{submission.id}/grade-all",
        json={"grades": [{"answerId": str(auto_answer.id), "score": 1, "maxScore": 1}]},
    )
    assert batch.status_code == 200
    assert batch.json()["data"]["graded_count"] == 1


async def test_manual_grade_out_of_range(client, seed, student):
    _, submission, _, manual_answer = await seed_submission(seed, student)

    response = await client.post(
        f"/api/v1/submissions/{submission.id}/answers/{manual_answer.id}/grade",
        json={"score": 7, "max_score": 5},
    )

    assert response.status_code == 400
    assert response.json()["msg"] == "Score must be between 0 and maxScore"


async def test_regrade_without_score_is_404(client, seed, student):
    _, submission, _, manual_answer = await seed_submission(seed, student)

    response = await client.put(
        f"/api/v1/submissions/{submission.id}/answers/{manual_answer.id}/grade",
        json={"score": 1},
    )

    assert response.status_code == 404


async def test_grade_all(client, seed, student):
    _, submission, auto_answer, manual_answer = await seed_submission(seed, student)

    response = await client.post(
        f"/api/v1/submissions/{submission.id}/grade-all",
        json={
            "grades": [
                {"answer_id": str(auto_answer.id), "score": 1, "max_score": 1},
                {"answer_id": str(manual_answer.id), "score": 9, "max_score": 5},
            ]
        },
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["graded_count"] == 1
    assert data["failed_count"] == 1
    assert data["final_score"]["pending_count"] == 1


async def test_grade_all_requires_items(client, seed, student):
    _, submission, _, _ = await seed_submission(seed, student)

    response = await client.post(f"/api/v1/submissions/{submission.id}/grade-all", json={"grades": []})

    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"


async def test_calculate_score_and_grading_view(client, seed, student):
    _, submission, _, _ = await seed_submission(seed, student)

    totals = await client.post(f"/api/v1/submissions/{submission.id}/calculate-score")
    assert totals.status_code == 200
    assert totals.json()["data"]["pending_count"] == 2

    view = await client.get(f"/api/v1/submissions/{submission.id}/grading")
    assert view.status_code == 200
    titles = [item["question"]["title"] for item in view.json()["data"]["questions"]]
    assert titles == ["Capital", "Essay"]


async def test_unknown_submission_is_404(client):
    response = await client.get(f"/api/v1/submissions/{uuid.uuid4()}/grading")

    assert response.status_code == 404
    assert response.json()["msg"] == "Submission not found"


async def test_students_cannot_grade(client, seed, student, auth_state):
    _, submission, _, _ = await seed_submission(seed, student)
    auth_state["user"] = student

    response = await client.post(f"/api/v1/submissions/{submission.id}/auto-grade")

    assert response.status_code == 403
    assert response.json()["msg"] == "Insufficient permissions"


async def test_students_read_only_their_own_scores(client, seed, student, auth_state):
    _, submission, _, _ = await seed_submission(seed, student)
    other_student = await seed.user(Role.student)

    auth_state["user"] = student
    own = await client.get(f"/api/v1/submissions/{submission.id}/scores")
    assert own.status_code == 200
    assert own.json()["data"]["scores"]["pending_count"] == 2

    auth_state["user"] = other_student
    foreign = await client.get(f"/api/v1/submissions/{submission.id}/scores")
    assert foreign.status_code == 403


async def test_activity_report_route(client, seed, student):
    activity, submission, _, _ = await seed_submission(seed, student)
    await client.post(f"/api/v1/submissions/{submission.id}/auto-grade")

    response = await client.get(
        f"/api/v1/activities/{activity.id}/report", params={"status": "submitted", "limit": 10}
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["activity"]["id"] == str(activity.id)
    assert data["pagination"]["total"] == 1
    assert data["submissions"][0]["scores"]["graded_count"] == 1
    assert data["submissions"][0]["scores"]["pending_count"] == 1
    assert data["submissions"][0]["user"]["email"] == student.email
