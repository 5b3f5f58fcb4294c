from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from fintrack import models
from fintrack.core.config import settings
from fintrack.core.database import get_db
from fintrack.core.errors import NotFoundError


def get_current_user(
    x_user_id: Optional[int] = Header(default=None),
    db: Session = Depends(get_db),
) -> models.User:
    """Very lightweight current user resolver.

    Uses the ``X-User-Id`` header when present; otherwise returns the first
    user (creates a demo if none). Tests may override this dependency to
    simulate different users.
    """
    if x_user_id is not None:
        user = db.get(models.User, x_user_id)
        if not user or not user.is_active:
            raise NotFoundError("User not found")
        return user
    user = db.query(models.User).order_by(models.User.id).first()
    if not user:
        user = models.User(email="demo@example.com", is_active=True)
        db.add(user)
        db.flush()
        db.add(models.UserProfile(user_id=user.id, display_name="Demo", base_currency=settings.DEFAULT_CURRENCY))
        db.commit()
        db.refresh(user)
    return user
