from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, status

from flow.models.brainstorm import ROLE_ADMIN, ROLE_MEMBER, User

MEMBER_ROLES = frozenset({ROLE_MEMBER, ROLE_ADMIN})


def require_signed_in(user: Optional[User]) -> User:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


def require_member(user: Optional[User]) -> User:
    user = require_signed_in(user)
    if user.role not in MEMBER_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return user


def is_member(user: Optional[User]) -> bool:
    return user is not None and user.role in MEMBER_ROLES


def is_admin(user: Optional[User]) -> bool:
    return user is not None and user.role == ROLE_ADMIN


def can_modify(user: Optional[User], owner_id: str) -> bool:
    """Admins may change anything; members only what they created."""
    return is_admin(user) or (user is not None and user.id == owner_id)
