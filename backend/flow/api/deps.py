from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from flow.core.rbac import require_member
from flow.db.session import get_db
from flow.models.brainstorm import User


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Resolve the caller from the id forwarded by the upstream authenticator."""
    if not x_user_id:
        return None
    return db.get(User, x_user_id)


def get_member(user: Optional[User] = Depends(get_current_user)) -> User:
    return require_member(user)
