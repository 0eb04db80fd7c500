"""
Exam model - a generated quiz over a set of topics within a subject.

The record moves through an explicit lifecycle:
- PENDING: created, waiting for the question generator
- READY: mcq / true_false / short_answer populated
- SCORED: a submission was evaluated; result and submission are stored
"""

import enum
import uuid
import json
from datetime import datetime, timezone
from sqlalchemy import Column, Text, Integer, Float, Boolean, DateTime, Index, String
from prajna.database import Base


class ExamStatus(str, enum.Enum):
    PENDING = "PENDING"
    READY = "READY"
    SCORED = "SCORED"


def _load_json(value, default):
    if isinstance(value, (dict, list)):
        return value
    try:
        return json.loads(value) if value else default
    except (json.JSONDecodeError, TypeError):
        return default


class Exam(Base):
    """
    SQLAlchemy model for the exam table.

    JSON-valued columns (topics, mcq, true_false, short_answer, submission)
    are stored as JSON text so the same model works on SQLite and PostgreSQL.
    Column names match the existing Supabase table (mcqCount, additionalInfo).
    """
    __tablename__ = "exam"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique exam identifier")
    topics = Column(Text, nullable=False, default="[]",
                    doc="Ordered topic IDs the exam draws from, as JSON array")
    mcq_count = Column("mcqCount", Integer, nullable=False, default=0)
    true_false_count = Column("trueFalseCount", Integer, nullable=False, default=0)
    short_answer_count = Column("shortAnswerCount", Integer, nullable=False, default=0)
    additional_info = Column("additionalInfo", Text, nullable=True,
                             doc="Free-text guidance for question generation")
    user_id = Column(String(64), nullable=False)
    subject_id = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Written by the question generator
    title = Column(Text, nullable=True)
    mcq = Column(Text, nullable=True,
                 doc="JSON list of {question, options[], answer, ai_explanation?}")
    true_false = Column(Text, nullable=True,
                        doc="JSON list of {question, answer: bool, explanation}")
    short_answer = Column(Text, nullable=True,
                          doc="JSON list of {question, modelAnswer?}")
    feedback = Column(Text, nullable=True)

    # Written by the scoring engine
    result = Column(Float, nullable=True, doc="Total score of the evaluated submission")
    evaluated = Column(Boolean, nullable=False, default=False)
    submission = Column(Text, nullable=True,
                        doc="Full submission payload with per-question short-answer scores")

    status = Column(Text, nullable=False, default=ExamStatus.PENDING.value,
                    doc="Lifecycle status: PENDING | READY | SCORED")

    __table_args__ = (
        Index("ix_exam_user_id", "user_id"),
        Index("ix_exam_subject_id", "subject_id"),
        Index("ix_exam_created_at", "created_at"),
    )

    @property
    def topics_list(self):
        return _load_json(self.topics, [])

    @property
    def mcq_list(self):
        return _load_json(self.mcq, [])

    @property
    def true_false_list(self):
        return _load_json(self.true_false, [])

    @property
    def short_answer_list(self):
        return _load_json(self.short_answer, [])

    @property
    def submission_dict(self):
        return _load_json(self.submission, None)

    @property
    def exam_ready(self) -> bool:
        """True once the generator has populated the question arrays."""
        return self.status in (ExamStatus.READY.value, ExamStatus.SCORED.value)

    def __repr__(self):
        return f"<Exam(id={self.id}, user={self.user_id}, subject={self.subject_id}, status='{self.status}')>"
