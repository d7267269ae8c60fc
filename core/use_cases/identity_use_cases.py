"""Identity (KYC) verification.

Same approval shape as transactions with its own state on the user:
``none|rejected -> pending -> verified|rejected``. Review is a conditional
update from ``pending`` so two admins cannot both decide.
"""
import logging
from typing import List, Optional

from core.entities.notification import Direct, Broadcast, AUDIENCE_ADMINS
from core.entities.user import User, IDENTITY_PENDING, IDENTITY_VERIFIED, IDENTITY_REJECTED
from core.errors import ValidationError, NotFoundError, ConflictError, AuthorizationError
from core.repositories.user_repository import UserRepository
from core.services.notification_dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

DOCUMENT_SLOTS = ("front_id", "back_id", "selfie")


def submit_identity_documents(
    repo: UserRepository,
    notifier: NotificationDispatcher,
    user: User,
    documents: List[Optional[str]],
) -> User:
    if len(documents) != len(DOCUMENT_SLOTS):
        raise ValidationError("Front, back and selfie images are all required", field="documents")
    for slot, ref in zip(DOCUMENT_SLOTS, documents):
        if not ref:
            raise ValidationError(f"{slot} image is required", field=slot)
    current = repo.get_by_id(user.id)
    if current is None:
        raise NotFoundError("User not found")
    if current.identity_status == IDENTITY_VERIFIED:
        raise ConflictError("Identity is already verified")

    updated = repo.set_identity(user.id, IDENTITY_PENDING, [str(d) for d in documents])
    logger.info("User %s submitted identity documents", user.id)

    notifier.notify(
        Broadcast(AUDIENCE_ADMINS),
        title="New identity verification request",
        message=f"{updated.full_name or updated.email} uploaded identity documents for review.",
        type="info",
        related_entity_type="user",
        related_entity_id=user.id,
    )
    notifier.notify(
        Direct(user.id),
        title="Identity verification received",
        message="Your documents were received and will be reviewed, usually within 24-48 hours.",
        type="info",
        related_entity_type="user",
        related_entity_id=user.id,
    )
    return updated


def review_identity(
    repo: UserRepository,
    notifier: NotificationDispatcher,
    admin: User,
    user_id: int,
    verified: bool,
    notes: Optional[str] = None,
) -> User:
    if not admin.is_admin:
        logger.warning("security: user %s tried to review identity of user %s", admin.id, user_id)
        raise AuthorizationError("Administrator access required")
    if repo.get_by_id(user_id) is None:
        raise NotFoundError("User not found")
    new_status = IDENTITY_VERIFIED if verified else IDENTITY_REJECTED
    if not repo.update_identity_if(user_id, IDENTITY_PENDING, new_status):
        raise ConflictError("No pending identity verification for this user")
    logger.info("Identity of user %s %s by admin %s", user_id, new_status, admin.id)

    if verified:
        notifier.notify(
            Direct(user_id),
            title="Identity verified",
            message="Your identity was verified. All platform features are now available.",
            type="success",
            related_entity_type="user",
            related_entity_id=user_id,
        )
    else:
        notifier.notify(
            Direct(user_id),
            title="Identity verification rejected",
            message=(notes or "").strip() or "Your identity verification was rejected. Please contact support.",
            type="warning",
            related_entity_type="user",
            related_entity_id=user_id,
        )
    updated = repo.get_by_id(user_id)
    assert updated is not None
    return updated
