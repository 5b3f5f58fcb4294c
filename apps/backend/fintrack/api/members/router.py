from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fintrack import models
from fintrack.core.database import get_db
from fintrack.core.errors import ConflictError
from fintrack.schemas import MemberCreate, MemberOut


router = APIRouter(prefix="/members", tags=["members"])


def _member_out(user: models.User) -> MemberOut:
    profile = user.profile
    return MemberOut(
        id=user.id,
        email=user.email,
        is_active=user.is_active,
        display_name=profile.display_name if profile else None,
        base_currency=profile.base_currency if profile else None,
    )


@router.get("", response_model=list[MemberOut])
def list_members(db: Session = Depends(get_db)):
    users = db.query(models.User).order_by(models.User.id).all()
    return [_member_out(u) for u in users]


@router.post("", response_model=MemberOut, status_code=201)
def create_member(payload: MemberCreate, db: Session = Depends(get_db)):
    email = payload.email.lower()
    if db.query(models.User).filter(models.User.email == email).first():
        raise ConflictError("Member with same email already exists")
    user = models.User(email=email, is_active=payload.is_active)
    db.add(user)
    db.flush()
    db.add(
        models.UserProfile(
            user_id=user.id,
            display_name=payload.display_name,
            base_currency=payload.base_currency.upper() if payload.base_currency else None,
        )
    )
    db.commit()
    db.refresh(user)
    return _member_out(user)
