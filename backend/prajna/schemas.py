"""
Pydantic request/response schemas shared by the routes and services.

Field names mirror the JSON contract used by the web client, which is why
some of them are camelCase (mcqCount, modelAnswer, selectedTopics).
"""

from typing import List, Optional
from pydantic import BaseModel, Field, StrictBool


# ── Exam creation ────────────────────────────────────────────

class ExamCreateRequest(BaseModel):
    """Body of POST /exam."""
    selectedTopics: List[str] = Field(..., description="Topic IDs to draw questions from")
    mcqCount: int = Field(..., ge=0, description="Number of multiple-choice questions")
    trueFalseCount: int = Field(..., ge=0, description="Number of true/false questions")
    shortAnswerCount: int = Field(..., ge=0, description="Number of short-answer questions")
    additionalInfo: Optional[str] = Field(None, description="Extra guidance for the question generator")
    subject_id: str = Field(..., description="Owning subject")
    user_id: str = Field(..., description="Owning user")


# ── Generated questions ──────────────────────────────────────

class MCQQuestion(BaseModel):
    question: str
    options: List[str] = Field(default_factory=list)
    answer: str
    ai_explanation: Optional[str] = None


class TrueFalseQuestion(BaseModel):
    question: str
    answer: bool
    explanation: Optional[str] = None


class ShortAnswerQuestion(BaseModel):
    question: str
    modelAnswer: Optional[str] = None


class AttachQuestionsRequest(BaseModel):
    """Body of PUT /exam/{id}/questions, sent by the question generator."""
    title: Optional[str] = None
    mcq: List[MCQQuestion] = Field(default_factory=list)
    true_false: List[TrueFalseQuestion] = Field(default_factory=list)
    short_answer: List[ShortAnswerQuestion] = Field(default_factory=list)
    feedback: Optional[str] = None


# ── Submission ───────────────────────────────────────────────

class MCQAnswer(BaseModel):
    question: str
    user_answer: Optional[str] = None
    correct_answer: str


class TrueFalseAnswer(BaseModel):
    question: str
    user_answer: Optional[StrictBool] = None
    correct_answer: StrictBool


class ShortAnswerAnswer(BaseModel):
    question: str
    user_answer: Optional[str] = ""
    score: Optional[float] = Field(None, description="0-5, filled in by the scoring engine")
    modelAnswer: Optional[str] = None
    explanation: Optional[str] = Field(None, description="Evaluator feedback, filled in by the scoring engine")

    @property
    def is_blank(self) -> bool:
        return not (self.user_answer or "").strip()


class SubmissionAnswers(BaseModel):
    mcq: List[MCQAnswer]
    true_false: List[TrueFalseAnswer]
    short_answer: List[ShortAnswerAnswer]


class ExamSubmission(BaseModel):
    """Body of POST /exam/eval. Stored verbatim (with scores) on the exam."""
    exam_id: Optional[str] = None
    submission_time: Optional[str] = None
    answers: SubmissionAnswers


class ScoreDetails(BaseModel):
    mcq: int = 0
    true_false: int = 0
    short_answer: float = 0


class ScoringResult(BaseModel):
    exam_id: str
    total_score: float
    max_possible_score: int
    score_details: ScoreDetails
    evaluated: bool = True
    fallback_count: int = 0


class EvaluationResponse(BaseModel):
    """Response of POST /exam/eval."""
    success: bool
    exam_id: str
    total_score: float
    score_details: ScoreDetails
    max_possible_score: int
    evaluated: bool
    message: str


# ── Credits ──────────────────────────────────────────────────

class CreditRequest(BaseModel):
    credit: Optional[int] = Field(None, ge=0)
