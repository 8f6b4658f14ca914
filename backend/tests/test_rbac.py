from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from flow.core.rbac import can_modify, is_admin, is_member, require_member, require_signed_in


def make_user(role: str, user_id: str = "u1"):
    return SimpleNamespace(id=user_id, role=role)


def test_anonymous_is_unauthorized():
    with pytest.raises(HTTPException) as exc:
        require_member(None)
    assert exc.value.status_code == 401

    with pytest.raises(HTTPException):
        require_signed_in(None)


def test_visitor_is_forbidden():
    with pytest.raises(HTTPException) as exc:
        require_member(make_user("VISITOR"))
    assert exc.value.status_code == 403


@pytest.mark.parametrize("role", ["MEMBER", "ADMIN"])
def test_members_pass(role):
    user = make_user(role)

    assert require_member(user) is user
    assert is_member(user)


def test_modify_rules():
    owner = make_user("MEMBER", "owner")
    stranger = make_user("MEMBER", "stranger")
    admin = make_user("ADMIN", "boss")

    assert can_modify(owner, "owner")
    assert not can_modify(stranger, "owner")
    assert can_modify(admin, "owner")
    assert is_admin(admin) and not is_admin(owner)
    assert not can_modify(None, "owner")
