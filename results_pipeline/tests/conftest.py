"""
Shared fixtures: in-memory database, administrator capability, seeded events.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BADGE_SECRET", "test-badge-secret")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("VOTE_SALT", "test-vote-salt")

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator, List

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from results_pipeline.database import build_session_factory
from results_pipeline.orm import (
    Base, Event, ResultsStatus, School, Student, EvaluationCriterion, Submission
)
from results_pipeline.rbac import AdminCapability
from results_pipeline.services.credential_issuer import CredentialIssuer
from results_pipeline.services.credential_verifier import CredentialVerifier

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_SECRET = "test-badge-secret"


@pytest_asyncio.fixture
async def engine():
    """One in-memory database per test, shared by every session."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def admin() -> AdminCapability:
    return AdminCapability(actor_id="admin-1")


@pytest.fixture
def issuer() -> CredentialIssuer:
    return CredentialIssuer(secret=TEST_SECRET)


@pytest.fixture
def verifier() -> CredentialVerifier:
    return CredentialVerifier(secret=TEST_SECRET)


@dataclass
class SeededEvent:
    event: Event
    criteria: List[EvaluationCriterion]
    submissions: List[Submission]
    students: List[Student]


async def seed_event(
    db: AsyncSession,
    *,
    title: str = "Regional Science Fair",
    public_vote_weight: int = 0,
    criteria=((60, 50), (40, 50)),
    submission_count: int = 2,
    status: ResultsStatus = ResultsStatus.SCORING_OPEN,
    school_name: str = "Hillside High"
) -> SeededEvent:
    """
    Create an event with a rubric and submissions.

    `criteria` is a sequence of (weight, max_score). Submissions are created
    one minute apart, in order.
    """
    school = School(name=school_name)
    db.add(school)
    await db.flush()

    event = Event(
        title=title,
        public_vote_weight=public_vote_weight,
        results_status=status.value,
    )
    db.add(event)
    await db.flush()

    rows = []
    for index, (weight, max_score) in enumerate(criteria):
        row = EvaluationCriterion(
            event_id=event.id,
            title=f"Criterion {index + 1}",
            weight=Decimal(str(weight)),
            max_score=Decimal(str(max_score)),
            display_order=index,
        )
        db.add(row)
        rows.append(row)

    base_time = datetime(2026, 3, 1, 9, 0, 0)
    students = []
    submissions = []
    for index in range(submission_count):
        student = Student(full_name=f"Student {index + 1}", school_id=school.id)
        db.add(student)
        await db.flush()
        students.append(student)

        submission = Submission(
            event_id=event.id,
            student_id=student.id,
            title=f"Project {index + 1}",
            created_at=base_time + timedelta(minutes=index),
        )
        db.add(submission)
        submissions.append(submission)

    await db.commit()
    return SeededEvent(event=event, criteria=rows, submissions=submissions, students=students)


@pytest.fixture
def seed():
    return seed_event
