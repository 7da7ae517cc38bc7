from __future__ import annotations

import os
import tempfile
import uuid
from typing import Any, AsyncGenerator, Dict, Optional

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "grading-tests.log"))

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.api.dependencies.auth import get_current_user
from app.api.v1.routes.router import router as api_router
from app.core.exceptions import register_exception_handlers
from app.db.deps import Base, get_db
from app.models.activity import Activity, ActivityElement
from app.models.question import Question, QuestionScoring
from app.models.submission import Submission, SubmissionAnswer
from app.models.user import Role, User
from app.services.grading.response_grader import infer_answer_kinds
from app.utils.enums import AnswerStatus, ScoringType, SubmissionStatus


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Ensure pytest-anyio uses asyncio for all async tests."""
    return "asyncio"


@pytest.fixture()
def test_app() -> FastAPI:
    app = FastAPI()
    app.include_router(api_router, prefix="/api/v1")
    register_exception_handlers(app)
    return app


@pytest.fixture()
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'grading.sqlite'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session
        await session.rollback()


class Seeder:
    """Creates rows the grading code reads but never writes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _add(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def user(self, role: Role = Role.student, email: Optional[str] = None) -> User:
        return await self._add(
            User(
                id=uuid.uuid4(),
                first_name=role.value.title(),
                last_name="User",
                email=email or f"{role.value}-{uuid.uuid4().hex[:8]}@example.com",
                role=role,
                is_active=True,
            )
        )

    async def activity(self, title: str = "Unit quiz") -> Activity:
        return await self._add(Activity(id=uuid.uuid4(), title=title, description="Weekly check"))

    async def question(
        self,
        activity: Optional[Activity] = None,
        title: str = "Question",
        order_index: int = 0,
    ) -> Question:
        question = await self._add(Question(id=uuid.uuid4(), title=title, body_html="<p>?</p>"))
        if activity is not None:
            await self._add(
                ActivityElement(
                    id=uuid.uuid4(),
                    activity_id=activity.id,
                    question_id=question.id,
                    order_index=order_index,
                )
            )
        return question

    async def scoring(
        self,
        question: Question,
        expected_answers: Optional[Dict[str, Any]] = None,
        scoring_type: ScoringType = ScoringType.auto,
        auto_grade_config: Optional[Dict[str, Any]] = None,
        field_scores: Optional[Dict[str, Any]] = None,
        tag_kinds: bool = True,
    ) -> QuestionScoring:
        return await self._add(
            QuestionScoring(
                id=uuid.uuid4(),
                question_id=question.id,
                scoring_type=scoring_type,
                expected_answers=expected_answers,
                auto_grade_config=auto_grade_config,
                field_scores=field_scores,
                answer_kinds=infer_answer_kinds(expected_answers) if tag_kinds else None,
            )
        )

    async def submission(
        self,
        user: User,
        activity: Activity,
        status: SubmissionStatus = SubmissionStatus.submitted,
    ) -> Submission:
        return await self._add(
            Submission(id=uuid.uuid4(), user_id=user.id, activity_id=activity.id, status=status)
        )

    async def answer(
        self,
        submission: Submission,
        question: Question,
        answer_data: Dict[str, Any],
        status: AnswerStatus = AnswerStatus.submitted,
    ) -> SubmissionAnswer:
        return await self._add(
            SubmissionAnswer(
                id=uuid.uuid4(),
                submission_id=submission.id,
                question_id=question.id,
                answer_data=answer_data,
                status=status,
            )
        )


@pytest.fixture()
def seed(db_session: AsyncSession) -> Seeder:
    return Seeder(db_session)


@pytest.fixture()
async def teacher(seed: Seeder) -> User:
    return await seed.user(Role.teacher)


@pytest.fixture()
async def student(seed: Seeder) -> User:
    return await seed.user(Role.student)


@pytest.fixture()
def auth_state(teacher: User) -> Dict[str, User]:
    """The user the test client is signed in as; tests may swap it."""
    return {"user": teacher}


@pytest.fixture()
async def client(
    test_app: FastAPI, db_session: AsyncSession, auth_state: Dict[str, User]
) -> AsyncGenerator[AsyncClient, None]:
    async def _get_test_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def _get_signed_in_user():
        return auth_state["user"]

    test_app.dependency_overrides[get_db] = _get_test_db
    test_app.dependency_overrides[get_current_user] = _get_signed_in_user

    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client

    test_app.dependency_overrides.clear()


@pytest.fixture()
async def token_client(
    test_app: FastAPI, db_session: AsyncSession
) -> AsyncGenerator[AsyncClient, None]:
    """Client that authenticates through real bearer tokens."""

    async def _get_test_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    test_app.dependency_overrides[get_db] = _get_test_db

    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client

    test_app.dependency_overrides.clear()
