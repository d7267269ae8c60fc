import pytest

from core.entities.user import IDENTITY_PENDING, IDENTITY_VERIFIED, IDENTITY_REJECTED
from core.errors import ValidationError, ConflictError, AuthorizationError, NotFoundError
from core.services.notification_dispatcher import NotificationDispatcher
from core.use_cases.identity_use_cases import submit_identity_documents, review_identity

DOCS = ["/uploads/identity_verification/front.jpg",
        "/uploads/identity_verification/back.jpg",
        "/uploads/identity_verification/selfie.jpg"]


@pytest.fixture
def notifier(notifications):
    return NotificationDispatcher(notifications)


def test_submission_goes_pending_and_alerts_admins(alice, admin, users, notifier, notifications):
    user = submit_identity_documents(users, notifier, alice, DOCS)

    assert user.identity_status == IDENTITY_PENDING
    assert user.identity_documents == DOCS
    admin_titles = [n.title for n in notifications.list_visible(admin.id, is_admin=True)]
    assert "New identity verification request" in admin_titles
    user_titles = [n.title for n in notifications.list_visible(alice.id, is_admin=False)]
    assert user_titles == ["Identity verification received"]


def test_submission_needs_all_documents(alice, users, notifier):
    with pytest.raises(ValidationError) as exc:
        submit_identity_documents(users, notifier, alice, [DOCS[0], None, DOCS[2]])
    assert exc.value.field == "back_id"


def test_approval(alice, admin, users, notifier, notifications):
    submit_identity_documents(users, notifier, alice, DOCS)

    user = review_identity(users, notifier, admin, alice.id, verified=True)

    assert user.identity_status == IDENTITY_VERIFIED
    latest = notifications.list_visible(alice.id, is_admin=False)[0]
    assert latest.title == "Identity verified"
    assert latest.type == "success"

    with pytest.raises(ConflictError):
        review_identity(users, notifier, admin, alice.id, verified=False)
    with pytest.raises(ConflictError):
        submit_identity_documents(users, notifier, alice, DOCS)


def test_rejection_carries_notes(alice, admin, users, notifier, notifications):
    submit_identity_documents(users, notifier, alice, DOCS)

    user = review_identity(users, notifier, admin, alice.id, verified=False, notes="Selfie is blurry")

    assert user.identity_status == IDENTITY_REJECTED
    latest = notifications.list_visible(alice.id, is_admin=False)[0]
    assert latest.type == "warning"
    assert latest.message == "Selfie is blurry"

    again = submit_identity_documents(users, notifier, alice, DOCS)
    assert again.identity_status == IDENTITY_PENDING


def test_review_without_submission(alice, admin, users, notifier):
    with pytest.raises(ConflictError):
        review_identity(users, notifier, admin, alice.id, verified=True)
    with pytest.raises(NotFoundError):
        review_identity(users, notifier, admin, 9999, verified=True)


def test_review_requires_admin(alice, bob, users, notifier):
    submit_identity_documents(users, notifier, alice, DOCS)
    with pytest.raises(AuthorizationError):
        review_identity(users, notifier, bob, alice.id, verified=True)
