"""
Exam API routes.

Provides endpoints for:
- Creating an exam (PENDING until questions are generated)
- Listing a user's exams
- Fetching an exam's questions for the exam page
- Attaching generated questions
- Evaluating a submission
"""

import time
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from prajna.database import get_db
from prajna.schemas import (
    ExamCreateRequest, AttachQuestionsRequest, ExamSubmission, EvaluationResponse
)
from prajna.services import exam_service
from prajna.services.scoring import score_submission
from prajna.services.evaluator import get_evaluator
from prajna.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")


@router.post("/exam", status_code=201)
def create_exam(request: ExamCreateRequest, db: Session = Depends(get_db)):
    """Create a new exam for the selected topics."""
    exam = exam_service.create_exam(db, request)
    return exam_service.serialize_exam(exam)


@router.get("/exam")
def list_exams(
    userId: Optional[str] = Query(None, description="Owner of the exams"),
    subjectId: Optional[str] = Query(None, description="Restrict to one subject"),
    db: Session = Depends(get_db)
):
    """List a user's exams, newest first."""
    start_time = time.time()
    exams = exam_service.list_exams(db, userId, subjectId)

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO", "Listed {} exams".format(len(exams)),
        context={"user_id": userId, "subject_id": subjectId},
        extra_data={"duration_ms": round(duration_ms, 2)})

    return [exam_service.serialize_exam(e) for e in exams]


@router.get("/exam/main/{exam_id}")
def get_exam_questions(exam_id: str, db: Session = Depends(get_db)):
    """Questions of one exam, shaped for the exam page."""
    return exam_service.get_exam(db, exam_id)


@router.get("/exam/{exam_id}")
def get_exam_record(exam_id: str, db: Session = Depends(get_db)):
    """Full exam record including status, result and stored submission."""
    return exam_service.serialize_exam(exam_service.load_exam(db, exam_id))


@router.put("/exam/{exam_id}/questions")
def attach_questions(exam_id: str, request: AttachQuestionsRequest, db: Session = Depends(get_db)):
    """Store generated questions and mark the exam ready."""
    exam = exam_service.attach_questions(db, exam_id, request)
    return exam_service.serialize_exam(exam)


@router.post("/exam/eval", response_model=EvaluationResponse)
async def evaluate_exam(
    submission: ExamSubmission,
    db: Session = Depends(get_db),
    evaluator=Depends(get_evaluator)
):
    """Score a submission and store the result on the exam."""
    result = await score_submission(db, submission, evaluator)

    return EvaluationResponse(
        success=True,
        exam_id=result.exam_id,
        total_score=result.total_score,
        score_details=result.score_details,
        max_possible_score=result.max_possible_score,
        evaluated=result.evaluated,
        message="Exam evaluation completed successfully"
    )
