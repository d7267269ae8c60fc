from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.entities.user import User
from core.use_cases.notification_use_cases import (
    list_notifications,
    mark_read,
    mark_all_read,
    delete_notification,
)
from infrastructure.db.sqlite_notifications import SQLiteNotificationRepository
from infrastructure.web.dependencies import get_current_user, get_notification_repo
from infrastructure.web.schemas import NotificationResponse, notification_out

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


class SuccessResponse(BaseModel):
    success: bool = True
    updated: int = 0

@router.get("", response_model=List[NotificationResponse])
def notifications(
    current_user: User = Depends(get_current_user),
    repo: SQLiteNotificationRepository = Depends(get_notification_repo),
):
    return [notification_out(n) for n in list_notifications(repo, current_user)]

@router.get("/unread", response_model=List[NotificationResponse])
def unread_notifications(
    current_user: User = Depends(get_current_user),
    repo: SQLiteNotificationRepository = Depends(get_notification_repo),
):
    return [notification_out(n) for n in list_notifications(repo, current_user, unread_only=True)]

@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def read_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    repo: SQLiteNotificationRepository = Depends(get_notification_repo),
):
    return notification_out(mark_read(repo, current_user, notification_id))

@router.post("/mark-all-read", response_model=SuccessResponse)
def read_all(
    current_user: User = Depends(get_current_user),
    repo: SQLiteNotificationRepository = Depends(get_notification_repo),
):
    return SuccessResponse(updated=mark_all_read(repo, current_user))

@router.delete("/{notification_id}", response_model=SuccessResponse)
def remove_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    repo: SQLiteNotificationRepository = Depends(get_notification_repo),
):
    delete_notification(repo, current_user, notification_id)
    return SuccessResponse(updated=1)
