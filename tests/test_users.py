import pytest

from core.errors import AuthorizationError, ConflictError, NotFoundError
from core.use_cases.user_use_cases import list_users, set_user_role


def test_admin_grants_and_revokes_role(admin, alice, users):
    promoted = set_user_role(users, admin, alice.id, True)
    assert promoted.is_admin
    assert [u.id for u in list_users(users, promoted)] == [admin.id, alice.id]

    demoted = set_user_role(users, admin, alice.id, False)
    assert not demoted.is_admin
    assert not users.get_by_id(alice.id).is_admin


def test_admin_cannot_demote_self(admin, users):
    with pytest.raises(ConflictError):
        set_user_role(users, admin, admin.id, False)
    assert users.get_by_id(admin.id).is_admin


def test_role_change_rules(admin, alice, bob, users):
    with pytest.raises(AuthorizationError):
        set_user_role(users, alice, bob.id, True)
    with pytest.raises(AuthorizationError):
        list_users(users, alice)
    with pytest.raises(NotFoundError):
        set_user_role(users, admin, 9999, True)
