import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from core.entities.user import User
from core.services.notification_dispatcher import NotificationDispatcher
from core.services.proof_storage import ProofStorage
from core.use_cases.identity_use_cases import submit_identity_documents
from infrastructure.db.sqlite import SQLiteUserRepository
from infrastructure.web.dependencies import get_current_user, get_user_repo, get_notifier, get_proof_storage
from infrastructure.web.schemas import UserResponse, user_out

router = APIRouter(prefix="/api", tags=["identity"])

IDENTITY_SUBDIR = "identity_verification"


@router.post("/identity-verification", response_model=UserResponse)
async def submit_identity(
    front_id: Optional[UploadFile] = File(None),
    back_id: Optional[UploadFile] = File(None),
    selfie: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    repo: SQLiteUserRepository = Depends(get_user_repo),
    notifier: NotificationDispatcher = Depends(get_notifier),
    storage: ProofStorage = Depends(get_proof_storage),
):
    references = []
    try:
        for upload in (front_id, back_id, selfie):
            if upload is None or not upload.filename:
                references.append(None)
                continue
            content = await upload.read()
            stored = await asyncio.to_thread(storage.save, upload.filename, content, IDENTITY_SUBDIR)
            references.append(stored.reference)
        user = await asyncio.to_thread(submit_identity_documents, repo, notifier, current_user, references)
    except Exception:
        for ref in references:
            if ref:
                storage.discard(ref)
        raise
    return user_out(user)
