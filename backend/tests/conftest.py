import os

# Must be set before prajna.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GEMINI_API_KEY"] = ""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from prajna.database import Base, get_db
from prajna.main import app
from prajna.models.exam import Exam, ExamStatus
from prajna.services.evaluator import ShortAnswerEvaluation, get_evaluator


class FakeEvaluator:
    """
    Stand-in for the Gemini evaluator.

    `responses` maps a question text to a score, an exception instance to
    raise, or a (score, delay_seconds) tuple. Unlisted questions get
    `default_score`.
    """

    def __init__(self, responses=None, default_score=4):
        self.responses = responses or {}
        self.default_score = default_score
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def evaluate(self, ideal_answer, question, answer):
        self.calls.append({"ideal_answer": ideal_answer, "question": question, "answer": answer})
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            outcome = self.responses.get(question, self.default_score)
            if isinstance(outcome, tuple):
                outcome, delay = outcome
                await asyncio.sleep(delay)
            else:
                await asyncio.sleep(0)
            if isinstance(outcome, Exception):
                raise outcome
            return ShortAnswerEvaluation(score=outcome, explanation="Graded: {}".format(question))
        finally:
            self.in_flight -= 1


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def evaluator():
    return FakeEvaluator()


@pytest.fixture
def client(session_factory, evaluator):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_evaluator] = lambda: evaluator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_exam(db_session):
    """Insert an exam directly; ready=True attaches the given questions."""
    def _make(ready=True, user_id="user-1", subject_id="subject-1",
              mcq=None, true_false=None, short_answer=None, **fields):
        mcq = mcq or []
        true_false = true_false or []
        short_answer = short_answer or []
        exam = Exam(
            topics=json.dumps(["topic-1"]),
            mcq_count=len(mcq),
            true_false_count=len(true_false),
            short_answer_count=len(short_answer),
            user_id=user_id,
            subject_id=subject_id,
            evaluated=False,
            status=ExamStatus.READY.value if ready else ExamStatus.PENDING.value,
            **fields
        )
        if ready:
            exam.mcq = json.dumps(mcq)
            exam.true_false = json.dumps(true_false)
            exam.short_answer = json.dumps(short_answer)
        db_session.add(exam)
        db_session.commit()
        db_session.refresh(exam)
        return exam
    return _make


@pytest.fixture
def evaluator_factory():
    return FakeEvaluator
