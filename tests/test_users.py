import pytest

from patentflow.core.errors import ValidationFailed
from patentflow.models.user import Role
from patentflow.schemas.user import UserCreate, UserUpdate
from patentflow.services import users as service


def new_user(email="Pat@Example.com", roles=(Role.PROCESSOR,)):
    return UserCreate(email=email, name="Pat", password="longenough", roles=list(roles))


def test_email_is_stored_lower_case_and_password_hashed(session):
    user = service.create_user(session, new_user())
    assert user.email == "pat@example.com"
    assert user.password != "longenough"
    assert service.authenticate(session, "PAT@example.com", "longenough").id == user.id


def test_duplicate_email_is_rejected_case_insensitively(session):
    service.create_user(session, new_user())
    with pytest.raises(ValidationFailed) as exc:
        service.create_user(session, new_user(email="pat@EXAMPLE.com"))
    assert exc.value.field == "email"


def test_authentication_failures_look_the_same(session):
    service.create_user(session, new_user())
    with pytest.raises(ValidationFailed) as wrong_password:
        service.authenticate(session, "pat@example.com", "not-the-password")
    with pytest.raises(ValidationFailed) as unknown:
        service.authenticate(session, "nobody@example.com", "longenough")
    assert wrong_password.value.message == unknown.value.message


def test_role_set_must_not_be_empty():
    with pytest.raises(ValueError):
        UserCreate(email="a@example.com", name="A", password="longenough", roles=[])


def test_update_roles_and_password(session):
    user = service.create_user(session, new_user())
    service.update_user(session, user.id, UserUpdate(roles=[Role.QA, Role.CASE_MANAGER], password="evenlonger"))
    assert service.authenticate(session, "pat@example.com", "evenlonger").roles == ["QA", "Case Manager"]


def test_list_users_by_role(session):
    service.create_user(session, new_user("a@example.com", [Role.QA]))
    service.create_user(session, new_user("b@example.com", [Role.PROCESSOR, Role.QA]))
    service.create_user(session, new_user("c@example.com", [Role.PROCESSOR]))
    assert sorted(u.email for u in service.list_users(session, Role.QA)) == ["a@example.com", "b@example.com"]
