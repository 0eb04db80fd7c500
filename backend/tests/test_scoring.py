import asyncio
import json

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import OperationalError

from prajna import config
from prajna.errors import (
    ValidationError, NotFoundError, ConflictError, ExamNotReadyError,
    ExternalServiceError, PersistenceError
)
from prajna.models.exam import Exam, ExamStatus
from prajna.schemas import ExamSubmission, MCQAnswer, TrueFalseAnswer
from prajna.services import scoring
from prajna.services.scoring import (
    score_submission, score_mcq, score_true_false, max_possible_score
)


def build_submission(exam_id, mcq=(), true_false=(), short_answer=()):
    return ExamSubmission.model_validate({
        "exam_id": exam_id,
        "submission_time": "2025-03-02T10:00:00Z",
        "answers": {
            "mcq": [
                {"question": "MCQ {}".format(i), "user_answer": user, "correct_answer": correct}
                for i, (user, correct) in enumerate(mcq)
            ],
            "true_false": [
                {"question": "TF {}".format(i), "user_answer": user, "correct_answer": correct}
                for i, (user, correct) in enumerate(true_false)
            ],
            "short_answer": [
                {"question": question, "user_answer": answer, "modelAnswer": "ideal " + question}
                for question, answer in short_answer
            ],
        },
    })


def reload(db_session, exam_id):
    db_session.expire_all()
    return db_session.get(Exam, exam_id)


# ── Closed-form questions ────────────────────────────────────

def test_mcq_requires_exact_case_sensitive_match():
    entries = [
        MCQAnswer(question="a", user_answer="Paris", correct_answer="Paris"),
        MCQAnswer(question="b", user_answer="paris", correct_answer="Paris"),
        MCQAnswer(question="c", user_answer="Paris ", correct_answer="Paris"),
        MCQAnswer(question="d", user_answer=None, correct_answer="Paris"),
    ]
    assert score_mcq(entries) == 1


def test_true_false_null_never_scores():
    entries = [
        TrueFalseAnswer(question="a", user_answer=True, correct_answer=True),
        TrueFalseAnswer(question="b", user_answer=False, correct_answer=False),
        TrueFalseAnswer(question="c", user_answer=True, correct_answer=False),
        TrueFalseAnswer(question="d", user_answer=None, correct_answer=False),
    ]
    assert score_true_false(entries) == 2


@pytest.mark.parametrize("value", ["true", 1, "yes"])
def test_true_false_answers_must_be_real_booleans(value):
    with pytest.raises(PydanticValidationError):
        TrueFalseAnswer(question="a", user_answer=value, correct_answer=True)
    with pytest.raises(PydanticValidationError):
        TrueFalseAnswer(question="a", user_answer=True, correct_answer=value)


def test_submission_requires_every_answer_set():
    with pytest.raises(PydanticValidationError):
        ExamSubmission.model_validate({"exam_id": "x"})
    with pytest.raises(PydanticValidationError):
        ExamSubmission.model_validate({"exam_id": "x", "answers": {"mcq": [], "true_false": []}})


def test_max_possible_score_weights_short_answers_by_five():
    submission = build_submission(
        "x",
        mcq=[("A", "A")] * 3,
        true_false=[(True, True)] * 2,
        short_answer=[("q1", ""), ("q2", "")],
    )
    assert max_possible_score(submission) == 3 + 2 + 10


# ── Full submissions ─────────────────────────────────────────

@pytest.mark.asyncio
async def test_blank_short_answer_scores_zero_without_evaluator(db_session, make_exam, evaluator):
    exam = make_exam()
    submission = build_submission(
        exam.id,
        mcq=[("Paris", "Paris"), ("Lyon", "Paris")],
        true_false=[(True, True)],
        short_answer=[("Explain photosynthesis", "   ")],
    )

    result = await score_submission(db_session, submission, evaluator)

    assert result.total_score == 2
    assert result.max_possible_score == 8
    assert result.score_details.mcq == 1
    assert result.score_details.true_false == 1
    assert result.score_details.short_answer == 0
    assert result.evaluated is True
    assert submission.answers.short_answer[0].score == 0
    assert evaluator.calls == []


@pytest.mark.asyncio
async def test_evaluator_score_is_stored_on_entry(db_session, make_exam, evaluator_factory):
    exam = make_exam()
    evaluator = evaluator_factory(responses={"Define osmosis": 4})
    submission = build_submission(exam.id, short_answer=[("Define osmosis", "Water moves across a membrane")])

    result = await score_submission(db_session, submission, evaluator)

    assert result.score_details.short_answer == 4
    assert submission.answers.short_answer[0].score == 4
    assert evaluator.calls == [{
        "ideal_answer": "ideal Define osmosis",
        "question": "Define osmosis",
        "answer": "Water moves across a membrane",
    }]

    stored = reload(db_session, exam.id)
    assert stored.evaluated is True
    assert stored.result == 4
    assert stored.status == ExamStatus.SCORED.value
    entry = stored.submission_dict["answers"]["short_answer"][0]
    assert entry["score"] == 4
    assert entry["explanation"] == "Graded: Define osmosis"


@pytest.mark.asyncio
async def test_evaluator_failure_falls_back_per_question(db_session, make_exam, evaluator_factory):
    exam = make_exam()
    evaluator = evaluator_factory(responses={
        "q1": ExternalServiceError("quota exceeded"),
        "q2": RuntimeError("unexpected"),
        "q3": 3,
    })
    submission = build_submission(exam.id, short_answer=[("q1", "a"), ("q2", "b"), ("q3", "c")])

    result = await score_submission(db_session, submission, evaluator)

    assert [e.score for e in submission.answers.short_answer] == [1, 1, 3]
    assert result.score_details.short_answer == 5
    assert result.fallback_count == 2
    assert result.evaluated is True


@pytest.mark.asyncio
async def test_evaluator_timeout_uses_fallback(db_session, make_exam, evaluator_factory, monkeypatch):
    monkeypatch.setattr(config, "EVALUATOR_TIMEOUT_SECONDS", 0.01)
    exam = make_exam()
    evaluator = evaluator_factory(responses={"slow": (5, 1.0)})
    submission = build_submission(exam.id, short_answer=[("slow", "answer")])

    result = await score_submission(db_session, submission, evaluator)

    assert submission.answers.short_answer[0].score == config.SHORT_ANSWER_FALLBACK_SCORE
    assert result.fallback_count == 1


@pytest.mark.asyncio
async def test_out_of_range_scores_are_clamped(db_session, make_exam, evaluator_factory):
    exam = make_exam()
    evaluator = evaluator_factory(responses={"high": 9, "low": -2})
    submission = build_submission(exam.id, short_answer=[("high", "x"), ("low", "y")])

    result = await score_submission(db_session, submission, evaluator)

    assert [e.score for e in submission.answers.short_answer] == [5, 0]
    assert result.score_details.short_answer == 5


@pytest.mark.asyncio
async def test_scores_follow_question_order_not_completion_order(db_session, make_exam, evaluator_factory):
    exam = make_exam()
    evaluator = evaluator_factory(responses={"first": (2, 0.05), "second": (5, 0), "third": (3, 0.02)})
    submission = build_submission(exam.id, short_answer=[("first", "a"), ("second", "b"), ("third", "c")])

    await score_submission(db_session, submission, evaluator)

    assert [e.score for e in submission.answers.short_answer] == [2, 5, 3]
    assert evaluator.max_in_flight == 3


@pytest.mark.asyncio
async def test_concurrency_limit_is_respected(db_session, make_exam, evaluator_factory, monkeypatch):
    monkeypatch.setattr(config, "EVALUATOR_CONCURRENCY", 1)
    exam = make_exam()
    evaluator = evaluator_factory(responses={"a": (1, 0.01), "b": (2, 0.01), "c": (3, 0.01)})
    submission = build_submission(exam.id, short_answer=[("a", "x"), ("b", "y"), ("c", "z")])

    await score_submission(db_session, submission, evaluator)

    assert evaluator.max_in_flight == 1
    assert [e.score for e in submission.answers.short_answer] == [1, 2, 3]


@pytest.mark.asyncio
async def test_total_is_sum_of_parts(db_session, make_exam, evaluator_factory):
    exam = make_exam()
    evaluator = evaluator_factory(responses={"s1": 2.5, "s2": 4})
    submission = build_submission(
        exam.id,
        mcq=[("A", "A"), ("B", "A"), ("C", "C"), (None, "D")],
        true_false=[(True, True), (False, True), (None, True)],
        short_answer=[("s1", "x"), ("s2", "y"), ("s3", "")],
    )

    result = await score_submission(db_session, submission, evaluator)

    details = result.score_details
    assert (details.mcq, details.true_false, details.short_answer) == (2, 1, 6.5)
    assert result.total_score == details.mcq + details.true_false + details.short_answer
    assert result.max_possible_score == 4 + 3 + 15
    assert reload(db_session, exam.id).result == 9.5


# ── Rejections ───────────────────────────────────────────────

@pytest.mark.asyncio
async def test_missing_exam_id_is_rejected_before_scoring(db_session, evaluator):
    submission = build_submission(None, short_answer=[("q", "answer")])

    with pytest.raises(ValidationError):
        await score_submission(db_session, submission, evaluator)

    assert evaluator.calls == []


@pytest.mark.asyncio
async def test_unknown_exam_is_not_found(db_session, evaluator):
    with pytest.raises(NotFoundError):
        await score_submission(db_session, build_submission("missing"), evaluator)


@pytest.mark.asyncio
async def test_pending_exam_cannot_be_scored(db_session, make_exam, evaluator):
    exam = make_exam(ready=False)
    submission = build_submission(exam.id, short_answer=[("q", "answer")])

    with pytest.raises(ExamNotReadyError):
        await score_submission(db_session, submission, evaluator)

    assert evaluator.calls == []
    assert reload(db_session, exam.id).evaluated is False


@pytest.mark.asyncio
async def test_second_submission_conflicts(db_session, make_exam, evaluator):
    exam = make_exam()
    await score_submission(db_session, build_submission(exam.id, mcq=[("A", "A")]), evaluator)

    with pytest.raises(ConflictError):
        await score_submission(db_session, build_submission(exam.id, mcq=[("B", "A")]), evaluator)

    assert reload(db_session, exam.id).result == 1


@pytest.mark.asyncio
async def test_rescoring_overwrites_when_allowed(db_session, make_exam, evaluator, monkeypatch):
    monkeypatch.setattr(config, "ALLOW_RESCORING", True)
    exam = make_exam()
    await score_submission(db_session, build_submission(exam.id, mcq=[("A", "A")]), evaluator)
    await score_submission(db_session, build_submission(exam.id, mcq=[("B", "A")]), evaluator)

    stored = reload(db_session, exam.id)
    assert stored.result == 0
    assert stored.submission_dict["answers"]["mcq"][0]["user_answer"] == "B"


@pytest.mark.asyncio
async def test_persistence_failure_leaves_exam_unscored(db_session, make_exam, evaluator, monkeypatch):
    exam = make_exam()
    exam_id = exam.id

    def failing_commit():
        raise OperationalError("UPDATE exam", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(PersistenceError):
        await score_submission(db_session, build_submission(exam_id, mcq=[("A", "A")]), evaluator)

    monkeypatch.undo()
    stored = reload(db_session, exam_id)
    assert stored.evaluated is False
    assert stored.result is None
    assert stored.submission is None


@pytest.mark.asyncio
async def test_submission_is_stored_verbatim(db_session, make_exam, evaluator):
    exam = make_exam()
    submission = build_submission(exam.id, mcq=[("Paris", "Paris")], true_false=[(None, False)])

    await score_submission(db_session, submission, evaluator)

    stored = json.loads(reload(db_session, exam.id).submission)
    assert stored["exam_id"] == exam.id
    assert stored["submission_time"] == "2025-03-02T10:00:00Z"
    assert stored["answers"]["mcq"] == [
        {"question": "MCQ 0", "user_answer": "Paris", "correct_answer": "Paris"}
    ]
    assert stored["answers"]["true_false"][0]["user_answer"] is None


@pytest.mark.asyncio
async def test_database_work_runs_off_the_event_loop(db_session, make_exam, evaluator, monkeypatch):
    exam = make_exam()
    seen = []

    def on_event_loop():
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    real_load, real_persist = scoring.load_exam, scoring._persist_result

    def watched_load(*args):
        seen.append(("load", on_event_loop()))
        return real_load(*args)

    def watched_persist(*args):
        seen.append(("persist", on_event_loop()))
        return real_persist(*args)

    monkeypatch.setattr(scoring, "load_exam", watched_load)
    monkeypatch.setattr(scoring, "_persist_result", watched_persist)

    result = await score_submission(db_session, build_submission(exam.id, mcq=[("A", "A")]), evaluator)

    assert result.total_score == 1
    assert seen == [("load", False), ("persist", False)]
