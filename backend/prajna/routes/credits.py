"""
Credits API routes - read, grant, update and check a user's credits.
"""

from typing import Optional
from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from prajna import config
from prajna.database import get_db
from prajna.errors import ValidationError
from prajna.models.credit import Credit
from prajna.schemas import CreditRequest
from prajna.services import credits as credit_service

router = APIRouter()


def serialize_credit(credit: Credit) -> dict:
    return {
        "user_id": credit.user_id,
        "credit": credit.credit,
        "updated_at": credit.updated_at.isoformat() if credit.updated_at else None
    }


@router.get("/credit/{user_id}")
def get_credit(user_id: str, db: Session = Depends(get_db)):
    return serialize_credit(credit_service.get_credits(db, user_id))


@router.post("/credit/{user_id}", status_code=201)
def create_credit(user_id: str, request: Optional[CreditRequest] = Body(None),
                  db: Session = Depends(get_db)):
    """Create the credit entry for a user (DEFAULT_CREDIT_GRANT when the amount is missing or 0)."""
    amount = request.credit if request else None
    return serialize_credit(credit_service.grant_credits(db, user_id, amount))


@router.patch("/credit/{user_id}")
def update_credit(user_id: str, request: CreditRequest, db: Session = Depends(get_db)):
    if request.credit is None:
        raise ValidationError("Credit amount is required",
                              details=[{"loc": ["credit"], "msg": "field required"}])
    return serialize_credit(credit_service.set_credits(db, user_id, request.credit))


@router.get("/credit/{user_id}/check")
def check_credit(
    user_id: str,
    required: Optional[int] = Query(None, ge=0, description="Defaults to the exam creation cost"),
    db: Session = Depends(get_db)
):
    """Whether the user can afford a feature. Unknown users have zero credits."""
    required = config.EXAM_CREDIT_COST if required is None else required
    credit = credit_service.find_credits(db, user_id)
    balance = credit.credit if credit else 0
    return {
        "user_id": user_id,
        "credit": balance,
        "required": required,
        "sufficient": credit_service.has_sufficient_credits(db, user_id, required)
    }
