"""Notification dispatcher: persist a notification, then push it to live connections."""

import logging
from typing import Any, Callable, Optional
from pydantic import ValidationError
from sqlalchemy.orm import Session

import models
import schemas
from errors import NotFoundError
from utils.ledger import get_users_by_ids
from utils.realtime import RealtimeChannel

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Persists notifications and hands pushes to a scheduler.

    In the API the scheduler is BackgroundTasks.add_task, so the push runs
    after the response is sent and the caller of notify() never waits on it.
    A failed push cannot undo the stored notification; the recipient still
    sees it on the next GET /notifications.
    """

    def __init__(self, channel: RealtimeChannel, schedule: Callable[..., Any]):
        self.channel = channel
        self.schedule = schedule

    def notify(
        self,
        db: Session,
        user_id: int,
        message: str,
        payload: schemas.NotificationPayload
    ) -> models.Notification:
        notification = models.Notification(
            user_id=user_id,
            type=payload.type,
            message=message,
            read=False,
            data=payload.model_dump(exclude={"type"})
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        logger.info("Created %s notification %s for user %s", notification.type, notification.id, user_id)

        envelope = {
            "type": "notification",
            "data": schemas.Notification.model_validate(notification).model_dump(mode="json")
        }
        self.schedule(self.channel.broadcast, user_id, envelope)
        return notification


def get_notifications(db: Session, user_id: int) -> list[models.Notification]:
    return db.query(models.Notification).filter(
        models.Notification.user_id == user_id
    ).order_by(models.Notification.created_at.desc(), models.Notification.id.desc()).all()


def get_notification_or_404(db: Session, user_id: int, notification_id: int) -> models.Notification:
    """Another user's notification is reported as missing."""
    notification = db.query(models.Notification).filter(
        models.Notification.id == notification_id,
        models.Notification.user_id == user_id
    ).first()
    if not notification:
        raise NotFoundError("Notification not found")
    return notification


def mark_as_read(db: Session, user_id: int, notification_id: int) -> models.Notification:
    notification = get_notification_or_404(db, user_id, notification_id)
    notification.read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_as_read(db: Session, user_id: int) -> int:
    updated = db.query(models.Notification).filter(
        models.Notification.user_id == user_id,
        models.Notification.read == False
    ).update({"read": True})
    db.commit()
    return updated


def parse_payload(notification: models.Notification) -> Optional[schemas.NotificationPayload]:
    """The typed payload of a stored notification, or None if it doesn't match its type."""
    try:
        return schemas.notification_payload_adapter.validate_python(
            {**(notification.data or {}), "type": notification.type}
        )
    except ValidationError:
        logger.warning("Notification %s has a malformed %s payload", notification.id, notification.type)
        return None


def attach_actors(db: Session, notifications: list[models.Notification]) -> list[schemas.NotificationWithActor]:
    """Resolve the acting user of each notification from its structured actor_id."""
    payloads = {n.id: parse_payload(n) for n in notifications}
    actors = get_users_by_ids(db, [p.actor_id for p in payloads.values() if p is not None])

    result = []
    for notification in notifications:
        payload = payloads[notification.id]
        actor = actors.get(payload.actor_id) if payload is not None else None
        result.append(schemas.NotificationWithActor(
            id=notification.id,
            user_id=notification.user_id,
            type=notification.type,
            message=notification.message,
            read=notification.read,
            data=notification.data,
            created_at=notification.created_at,
            actor=schemas.UserSummary.model_validate(actor) if actor else None
        ))
    return result
