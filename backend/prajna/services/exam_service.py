"""
Exam Service - creation, listing, retrieval and question attachment.

Creation only persists a PENDING record. Question generation runs outside
this process and reports back through attach_questions(), which moves the
exam to READY.
"""

import json
import time
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from prajna import config
from prajna.errors import (
    ValidationError, MissingFieldError, NotFoundError, ConflictError, PersistenceError
)
from prajna.models.exam import Exam, ExamStatus
from prajna.schemas import ExamCreateRequest, AttachQuestionsRequest
from prajna.logging_config import get_logger, log_with_context

logger = get_logger("exam")
db_logger = get_logger("db")


def serialize_exam(exam: Exam) -> dict:
    """Full stored record, as returned by creation, listing and GET /exam/{id}."""
    return {
        "id": str(exam.id),
        "title": exam.title,
        "topics": exam.topics_list,
        "mcqCount": exam.mcq_count,
        "trueFalseCount": exam.true_false_count,
        "shortAnswerCount": exam.short_answer_count,
        "additionalInfo": exam.additional_info,
        "user_id": exam.user_id,
        "subject_id": exam.subject_id,
        "created_at": exam.created_at.isoformat() if exam.created_at else None,
        "mcq": exam.mcq_list,
        "true_false": exam.true_false_list,
        "short_answer": exam.short_answer_list,
        "feedback": exam.feedback,
        "result": exam.result,
        "evaluated": bool(exam.evaluated),
        "submission": exam.submission_dict,
        "status": exam.status,
        "exam_ready": exam.exam_ready,
    }


def _commit(db: Session, action: str, exam_id: str = None):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_with_context(db_logger, "ERROR", "Failed to {}: {}".format(action, e),
                         context={"exam_id": exam_id} if exam_id else None)
        raise PersistenceError("Failed to {}".format(action)) from e


def create_exam(db: Session, request: ExamCreateRequest) -> Exam:
    """
    Persist a new PENDING exam.

    The request has already passed schema validation (non-negative integer
    counts, list of topic strings). Credits are checked by the caller.
    """
    if not request.user_id:
        raise MissingFieldError("user_id")
    if not request.subject_id:
        raise MissingFieldError("subject_id")

    total = request.mcqCount + request.trueFalseCount + request.shortAnswerCount
    if config.ENFORCE_QUESTION_TOTAL and total != config.REQUIRED_QUESTION_TOTAL:
        raise ValidationError(
            "Question counts must add up to {}".format(config.REQUIRED_QUESTION_TOTAL),
            details=[{"loc": ["mcqCount", "trueFalseCount", "shortAnswerCount"],
                      "msg": "sum is {}".format(total)}]
        )

    exam = Exam(
        topics=json.dumps(request.selectedTopics),
        mcq_count=request.mcqCount,
        true_false_count=request.trueFalseCount,
        short_answer_count=request.shortAnswerCount,
        additional_info=request.additionalInfo or None,
        user_id=request.user_id,
        subject_id=request.subject_id,
        created_at=datetime.now(timezone.utc),
        evaluated=False,
        status=ExamStatus.PENDING.value,
    )
    db.add(exam)
    _commit(db, "create exam")
    db.refresh(exam)

    log_with_context(logger, "INFO", "Exam created with {} topics".format(len(request.selectedTopics)),
        context={"exam_id": str(exam.id), "user_id": exam.user_id, "subject_id": exam.subject_id},
        extra_data={"mcq": exam.mcq_count, "true_false": exam.true_false_count,
                    "short_answer": exam.short_answer_count})
    return exam


def list_exams(db: Session, user_id: Optional[str], subject_id: Optional[str] = None) -> list:
    """Exams of a user, optionally within one subject, newest first."""
    if not user_id:
        raise MissingFieldError("userId")

    query = db.query(Exam).filter(Exam.user_id == user_id)
    if subject_id:
        query = query.filter(Exam.subject_id == subject_id)

    try:
        exams = query.order_by(Exam.created_at.desc()).all()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Failed to fetch exams") from e
    return exams


def load_exam(db: Session, exam_id: str) -> Exam:
    # exam.id is a uuid column on PostgreSQL; malformed ids would fail the cast
    try:
        uuid.UUID(str(exam_id))
    except ValueError:
        raise NotFoundError("Exam not found")

    try:
        exam = db.query(Exam).filter(Exam.id == exam_id).first()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Failed to fetch exam data") from e
    if not exam:
        raise NotFoundError("Exam not found")
    return exam


def get_exam(db: Session, exam_id: str) -> dict:
    """
    Client-facing view of an exam's questions.

    Read-only. Missing question arrays become empty lists and missing
    description/feedback become empty strings, so polling before the
    generator finishes returns a well-formed (empty) exam.
    """
    if not exam_id:
        raise MissingFieldError("id")
    exam = load_exam(db, exam_id)
    return {
        "id": str(exam.id),
        "title": exam.title,
        "description": exam.additional_info or "",
        "mcq": exam.mcq_list,
        "short_answer": exam.short_answer_list,
        "true_false": exam.true_false_list,
        "feedback": exam.feedback or "",
    }


def attach_questions(db: Session, exam_id: str, request: AttachQuestionsRequest) -> Exam:
    """
    Store generated questions on a PENDING exam and mark it READY.

    Question arrays are written once; an exam that is already READY or
    SCORED is rejected with ConflictError.
    """
    start_time = time.time()
    exam = load_exam(db, exam_id)

    if exam.status != ExamStatus.PENDING.value:
        raise ConflictError("Exam {} already has questions (status {})".format(exam_id, exam.status))

    expected = {
        "mcq": (exam.mcq_count, len(request.mcq)),
        "true_false": (exam.true_false_count, len(request.true_false)),
        "short_answer": (exam.short_answer_count, len(request.short_answer)),
    }
    for kind, (declared, generated) in expected.items():
        if declared != generated:
            log_with_context(logger, "WARNING",
                "Generated {} {} questions, expected {}".format(generated, kind, declared),
                context={"exam_id": exam_id})

    if request.title is not None:
        exam.title = request.title
    if request.feedback is not None:
        exam.feedback = request.feedback
    exam.mcq = json.dumps([q.model_dump() for q in request.mcq])
    exam.true_false = json.dumps([q.model_dump() for q in request.true_false])
    exam.short_answer = json.dumps([q.model_dump() for q in request.short_answer])
    exam.status = ExamStatus.READY.value

    _commit(db, "attach questions", exam_id)
    db.refresh(exam)

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO", "Exam is ready",
        context={"exam_id": exam_id},
        extra_data={"duration_ms": round(duration_ms, 2),
                    "questions": sum(generated for _, generated in expected.values())})
    return exam
