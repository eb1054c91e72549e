"""Notifications router: pull-based read of stored notifications."""

from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils.notifications import attach_actors, get_notifications, mark_all_as_read, mark_as_read


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[schemas.NotificationWithActor])
def read_notifications(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    return attach_actors(db, get_notifications(db, current_user.id))


@router.post("/read-all")
def read_all_notifications(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    updated = mark_all_as_read(db, current_user.id)
    return {"success": True, "updated": updated}


@router.post("/{notification_id}/read", response_model=schemas.Notification)
def read_notification(
    notification_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    return mark_as_read(db, current_user.id, notification_id)
