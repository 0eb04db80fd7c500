"""Initial migration - create exam and credits tables

Revision ID: 001_initial
Revises: None
Create Date: 2025-03-02

Creates:
- exam: exam configuration, generated questions and scored submission
- credits: per-user credit balance

Also creates indexes for listing exams by user/subject, newest first.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── Exam Table ────────────────────────────────────────────
    op.create_table(
        'exam',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('topics', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('mcqCount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('trueFalseCount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shortAnswerCount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('additionalInfo', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('subject_id', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('mcq', postgresql.JSONB(), nullable=True),
        sa.Column('true_false', postgresql.JSONB(), nullable=True),
        sa.Column('short_answer', postgresql.JSONB(), nullable=True),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('result', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('evaluated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('submission', postgresql.JSONB(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False, server_default='PENDING'),
        sa.CheckConstraint("status IN ('PENDING', 'READY', 'SCORED')", name='ck_exam_status'),
        sa.CheckConstraint('"mcqCount" >= 0 AND "trueFalseCount" >= 0 AND "shortAnswerCount" >= 0',
                           name='ck_exam_counts_non_negative'),
    )

    op.create_index('ix_exam_user_id', 'exam', ['user_id'])
    op.create_index('ix_exam_subject_id', 'exam', ['subject_id'])
    op.create_index('ix_exam_created_at', 'exam', ['created_at'])

    # ── Credits Table ─────────────────────────────────────────
    op.create_table(
        'credits',
        sa.Column('user_id', sa.Text(), primary_key=True),
        sa.Column('credit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    """Drop all tables in reverse order."""
    op.drop_table('credits')
    op.drop_index('ix_exam_created_at', table_name='exam')
    op.drop_index('ix_exam_subject_id', table_name='exam')
    op.drop_index('ix_exam_user_id', table_name='exam')
    op.drop_table('exam')
