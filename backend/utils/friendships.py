"""Friendship lifecycle for an unordered pair of users.

none -> pending(initiator) -> accepted
                           -> declined -> pending (a fresh request reopens the row)

There is exactly one row per pair no matter who initiated. A request that
meets a pending request from the other side accepts it instead of creating a
second row.
"""

import logging
import uuid
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import models
from errors import ConflictError, LedgerValidationError, NotFoundError
from utils.ledger import get_friendship, get_friendship_or_404

logger = logging.getLogger(__name__)

# Outcomes of request_friendship
REQUESTED = "requested"
ACCEPTED = "accepted"


def request_friendship(
    db: Session,
    requester: models.User,
    recipient: models.User
) -> tuple[models.Friendship, str]:
    """
    Send a friend request from requester to recipient.

    Returns:
        The pair's friendship row and REQUESTED or ACCEPTED. ACCEPTED means
        the recipient had already asked the requester and the pair is now friends.

    Raises:
        LedgerValidationError: requesting yourself.
        ConflictError: already friends, or the requester's request is still pending.
    """
    if requester.id == recipient.id:
        raise LedgerValidationError("Cannot add yourself as friend")

    existing = get_friendship(db, requester.id, recipient.id)

    if existing is None:
        low, high = sorted((requester.id, recipient.id))
        friendship = models.Friendship(
            user_id=requester.id,
            friend_id=recipient.id,
            status="pending",
            user_low_id=low,
            user_high_id=high
        )
        db.add(friendship)
        try:
            db.commit()
        except IntegrityError:
            # The other side inserted the pair's row concurrently
            db.rollback()
            raise ConflictError("Friend request already exists")
        db.refresh(friendship)
        logger.info("User %s sent a friend request to user %s", requester.id, recipient.id)
        return friendship, REQUESTED

    if existing.status == "accepted":
        raise ConflictError("Already friends")

    if existing.status == "pending":
        if existing.user_id == requester.id:
            raise ConflictError("Friend request already sent")
        existing.status = "accepted"
        db.commit()
        db.refresh(existing)
        logger.info("Mutual request accepted friendship %s", existing.id)
        return existing, ACCEPTED

    # Declined: a fresh request from either side reopens the same row
    existing.user_id = requester.id
    existing.friend_id = recipient.id
    existing.status = "pending"
    db.commit()
    db.refresh(existing)
    logger.info("User %s reopened friendship %s", requester.id, existing.id)
    return existing, REQUESTED


def _pending_request_for_recipient(db: Session, user_id: int, friendship_id: int) -> models.Friendship:
    friendship = get_friendship_or_404(db, friendship_id)
    if user_id not in (friendship.user_id, friendship.friend_id):
        raise NotFoundError("Friendship not found")
    if friendship.status != "pending":
        raise ConflictError(f"Friend request is already {friendship.status}")
    if friendship.friend_id != user_id:
        raise LedgerValidationError("Only the recipient can respond to a friend request")
    return friendship


def accept_friendship(db: Session, user_id: int, friendship_id: int) -> models.Friendship:
    friendship = _pending_request_for_recipient(db, user_id, friendship_id)
    friendship.status = "accepted"
    db.commit()
    db.refresh(friendship)
    logger.info("User %s accepted friendship %s", user_id, friendship.id)
    return friendship


def decline_friendship(db: Session, user_id: int, friendship_id: int) -> models.Friendship:
    friendship = _pending_request_for_recipient(db, user_id, friendship_id)
    friendship.status = "declined"
    db.commit()
    db.refresh(friendship)
    logger.info("User %s declined friendship %s", user_id, friendship.id)
    return friendship


def create_manual_friend(db: Session, user: models.User, display_name: str) -> models.User:
    """
    Add a friend who has no account.

    A new placeholder user without a password is created every time, so
    placeholders are never shared between callers. The friendship is
    accepted immediately.
    """
    token = uuid.uuid4().hex[:12]
    friend = models.User(
        username=f"friend_{token}",
        email=f"manual_{token}@placeholder.local",
        display_name=display_name,
        hashed_password=None
    )
    db.add(friend)
    db.flush()

    low, high = sorted((user.id, friend.id))
    db.add(models.Friendship(
        user_id=user.id,
        friend_id=friend.id,
        status="accepted",
        user_low_id=low,
        user_high_id=high
    ))
    db.commit()
    db.refresh(friend)
    logger.info("User %s added manual friend %s", user.id, friend.id)
    return friend
