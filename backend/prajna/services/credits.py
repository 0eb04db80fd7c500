"""
Credits Service - per-user quota for AI features.

Exam creation does not consult this service itself; the client checks
has_sufficient_credits() (via GET /credit/{user_id}/check) before creating.
"""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from prajna import config
from prajna.errors import NotFoundError, ConflictError, PersistenceError
from prajna.models.credit import Credit
from prajna.logging_config import get_logger, log_with_context

logger = get_logger("credits")


def find_credits(db: Session, user_id: str) -> Optional[Credit]:
    return db.query(Credit).filter(Credit.user_id == user_id).first()


def get_credits(db: Session, user_id: str) -> Credit:
    credit = find_credits(db, user_id)
    if not credit:
        raise NotFoundError("No credit entry for user {}".format(user_id))
    return credit


def grant_credits(db: Session, user_id: str, amount: int = None) -> Credit:
    """Create the credit row for a new user."""
    if find_credits(db, user_id):
        raise ConflictError("Credit entry already exists for user {}".format(user_id))

    credit = Credit(
        user_id=user_id,
        credit=amount or config.DEFAULT_CREDIT_GRANT,
        updated_at=datetime.now(timezone.utc)
    )
    db.add(credit)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Failed to create credit entry") from e
    db.refresh(credit)

    log_with_context(logger, "INFO", "Granted {} credits".format(credit.credit),
                     context={"user_id": user_id})
    return credit


def set_credits(db: Session, user_id: str, amount: int) -> Credit:
    credit = get_credits(db, user_id)
    previous = credit.credit
    credit.credit = amount
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Failed to update credit") from e
    db.refresh(credit)

    log_with_context(logger, "INFO", "Credits updated {} -> {}".format(previous, amount),
                     context={"user_id": user_id})
    return credit


def has_sufficient_credits(db: Session, user_id: str, required: int = None) -> bool:
    """True when the user holds at least `required` credits (default EXAM_CREDIT_COST)."""
    if required is None:
        required = config.EXAM_CREDIT_COST
    credit = find_credits(db, user_id)
    return credit is not None and credit.credit >= required
