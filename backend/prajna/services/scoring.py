"""
Scoring Service - evaluates a complete exam submission.

Scoring rules:
1. MCQ: 1 point when user_answer equals correct_answer exactly (case-sensitive)
2. True/False: 1 point when user_answer is the same boolean as correct_answer
3. Short answer: 0-5 points from the AI evaluator; blank answers score 0,
   evaluator failures and timeouts score SHORT_ANSWER_FALLBACK_SCORE
4. total = mcq + true_false + short_answer
5. max_possible = |mcq| + |true_false| + 5 * |short_answer|

Short answers are evaluated concurrently. Each entry is updated in place, so
scores stay aligned with their question regardless of completion order.
The exam lookup and the final write use the sync Session, so they run in
the threadpool.
"""

import asyncio
import json
import time
from typing import List
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from prajna import config
from prajna.errors import (
    ValidationError, ConflictError, ExamNotReadyError, PersistenceError
)
from prajna.models.exam import Exam, ExamStatus
from prajna.schemas import (
    ExamSubmission, MCQAnswer, TrueFalseAnswer, ShortAnswerAnswer,
    ScoreDetails, ScoringResult
)
from prajna.services.exam_service import load_exam
from prajna.logging_config import get_logger, log_with_context

logger = get_logger("scoring")


def score_mcq(entries: List[MCQAnswer]) -> int:
    return sum(
        1 for entry in entries
        if entry.user_answer is not None and entry.user_answer == entry.correct_answer
    )


def score_true_false(entries: List[TrueFalseAnswer]) -> int:
    return sum(
        1 for entry in entries
        if entry.user_answer is not None and entry.user_answer is entry.correct_answer
    )


def clamp_short_answer_score(score) -> float:
    return min(max(float(score), 0.0), float(config.SHORT_ANSWER_MAX_SCORE))


def max_possible_score(submission: ExamSubmission) -> int:
    answers = submission.answers
    return (
        len(answers.mcq)
        + len(answers.true_false)
        + len(answers.short_answer) * config.SHORT_ANSWER_MAX_SCORE
    )


async def _evaluate_short_answer(index: int, entry: ShortAnswerAnswer, evaluator,
                                 semaphore: asyncio.Semaphore, exam_id: str) -> bool:
    """Score one entry in place. Returns True when the fallback score was used."""
    if entry.is_blank:
        entry.score = 0
        entry.explanation = None
        return False

    try:
        async with semaphore:
            evaluation = await asyncio.wait_for(
                evaluator.evaluate(
                    ideal_answer=entry.modelAnswer or "",
                    question=entry.question,
                    answer=entry.user_answer,
                ),
                timeout=config.EVALUATOR_TIMEOUT_SECONDS,
            )
    except Exception as e:
        # Any evaluator failure is isolated to this question
        entry.score = config.SHORT_ANSWER_FALLBACK_SCORE
        entry.explanation = None
        reason = "timeout" if isinstance(e, asyncio.TimeoutError) else str(e) or type(e).__name__
        log_with_context(logger, "WARNING",
            "Short answer evaluation failed, using fallback score {}".format(
                config.SHORT_ANSWER_FALLBACK_SCORE),
            context={"exam_id": exam_id, "question_index": index},
            extra_data={"reason": reason, "error_type": type(e).__name__})
        return True

    entry.score = clamp_short_answer_score(evaluation.score)
    entry.explanation = evaluation.explanation
    return False


async def evaluate_short_answers(entries: List[ShortAnswerAnswer], evaluator, exam_id: str) -> int:
    """Fill in score (and explanation) on every entry. Returns the fallback count."""
    semaphore = asyncio.Semaphore(max(1, config.EVALUATOR_CONCURRENCY))
    fallbacks = await asyncio.gather(*[
        _evaluate_short_answer(index, entry, evaluator, semaphore, exam_id)
        for index, entry in enumerate(entries)
    ])
    return sum(1 for used in fallbacks if used)


def _persist_result(db: Session, exam_id: str, total_score: float, submission: ExamSubmission):
    """
    Single UPDATE of result/evaluated/submission/status.

    Unless rescoring is allowed the update is conditional on evaluated = false,
    so of two racing submissions only the first one is stored.
    """
    query = db.query(Exam).filter(Exam.id == exam_id)
    if not config.ALLOW_RESCORING:
        query = query.filter(Exam.evaluated.is_(False))

    try:
        updated = query.update({
            Exam.result: total_score,
            Exam.evaluated: True,
            Exam.submission: json.dumps(submission.model_dump(mode="json")),
            Exam.status: ExamStatus.SCORED.value,
        }, synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_with_context(logger, "ERROR", "Failed to save evaluation results: {}".format(e),
                         context={"exam_id": exam_id})
        raise PersistenceError("Failed to save evaluation results") from e

    if updated == 0:
        raise ConflictError("Exam {} has already been evaluated".format(exam_id))


async def score_submission(db: Session, submission: ExamSubmission, evaluator) -> ScoringResult:
    """
    Score a full submission and store it on the exam.

    Raises:
        ValidationError: exam_id missing
        NotFoundError: no such exam
        ExamNotReadyError: questions were never generated
        ConflictError: already evaluated and rescoring is disabled
        PersistenceError: the final write failed (scores are discarded)
    """
    start_time = time.time()

    if not submission.exam_id:
        raise ValidationError(
            "Valid exam submission data is required",
            details=[{"loc": ["exam_id"], "msg": "field required"}]
        )
    exam_id = submission.exam_id

    exam = await run_in_threadpool(load_exam, db, exam_id)
    if exam.status == ExamStatus.PENDING.value:
        raise ExamNotReadyError("Exam {} is not ready yet".format(exam_id))
    if exam.evaluated and not config.ALLOW_RESCORING:
        raise ConflictError("Exam {} has already been evaluated".format(exam_id))
    user_id = exam.user_id

    answers = submission.answers
    fallback_count = await evaluate_short_answers(answers.short_answer, evaluator, exam_id)

    details = ScoreDetails(
        mcq=score_mcq(answers.mcq),
        true_false=score_true_false(answers.true_false),
        short_answer=sum(entry.score for entry in answers.short_answer),
    )
    total_score = details.mcq + details.true_false + details.short_answer
    max_score = max_possible_score(submission)

    await run_in_threadpool(_persist_result, db, exam_id, total_score, submission)

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO",
        "Submission scored: {}/{} (mcq={}, true_false={}, short_answer={})".format(
            total_score, max_score, details.mcq, details.true_false, details.short_answer),
        context={"exam_id": exam_id, "user_id": user_id},
        extra_data={
            "duration_ms": round(duration_ms, 2),
            "short_answers": len(answers.short_answer),
            "fallback_count": fallback_count
        })

    return ScoringResult(
        exam_id=exam_id,
        total_score=total_score,
        max_possible_score=max_score,
        score_details=details,
        evaluated=True,
        fallback_count=fallback_count,
    )
