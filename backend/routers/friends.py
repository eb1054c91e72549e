"""Friends router: friend requests, friend list with balances, reminders."""

from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user, get_dispatcher
from errors import LedgerValidationError, NotFoundError
from utils.balances import calculate_direct_balances
from utils.currency import format_currency
from utils.display import get_display_name
from utils.friendships import (
    ACCEPTED,
    accept_friendship,
    create_manual_friend,
    decline_friendship,
    request_friendship,
)
from utils.ledger import (
    are_friends,
    get_accepted_friends,
    get_pending_friendships,
    get_user_by_email,
    get_user_or_404,
    get_users_by_ids,
)
from utils.notifications import NotificationDispatcher


router = APIRouter(prefix="/friends", tags=["friends"])


@router.post("", response_model=schemas.Friendship, status_code=status.HTTP_201_CREATED)
def add_friend(
    friend_request: schemas.FriendRequest,
    current_user: Annotated[models.User, Depends(get_current_user)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
    db: Session = Depends(get_db)
):
    friend_user = get_user_by_email(db, friend_request.email)
    if not friend_user:
        raise NotFoundError("User not found")

    friendship, outcome = request_friendship(db, current_user, friend_user)

    if outcome == ACCEPTED:
        # The friend asked first; tell them their request went through
        dispatcher.notify(
            db,
            friend_user.id,
            f"{get_display_name(current_user)} accepted your friend request",
            schemas.FriendRequestAcceptedData(actor_id=current_user.id)
        )
    else:
        dispatcher.notify(
            db,
            friend_user.id,
            f"{get_display_name(current_user)} sent you a friend request",
            schemas.FriendRequestData(actor_id=current_user.id)
        )

    return friendship


@router.post("/manual", response_model=schemas.Friend, status_code=status.HTTP_201_CREATED)
def add_manual_friend(
    manual_friend: schemas.ManualFriendCreate,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    friend = create_manual_friend(db, current_user, manual_friend.display_name)
    return schemas.Friend(
        id=friend.id,
        display_name=friend.display_name,
        email=friend.email,
        avatar_url=friend.avatar_url,
        balance=0
    )


@router.post("/requests/{friendship_id}/accept", response_model=schemas.Friendship)
def accept_friend_request(
    friendship_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
    db: Session = Depends(get_db)
):
    friendship = accept_friendship(db, current_user.id, friendship_id)
    dispatcher.notify(
        db,
        friendship.user_id,
        f"{get_display_name(current_user)} accepted your friend request",
        schemas.FriendRequestAcceptedData(actor_id=current_user.id)
    )
    return friendship


@router.post("/requests/{friendship_id}/decline", response_model=schemas.Friendship)
def decline_friend_request(
    friendship_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    return decline_friendship(db, current_user.id, friendship_id)


@router.get("", response_model=list[schemas.FriendEntry])
def read_friends(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    """Accepted friends with their balance, followed by pending requests in both directions."""
    balances = calculate_direct_balances(db, current_user.id)
    friends = [
        schemas.Friend(
            id=friend.id,
            display_name=friend.display_name,
            email=friend.email,
            avatar_url=friend.avatar_url,
            balance=balances.get(friend.id, 0)
        )
        for friend in get_accepted_friends(db, current_user.id)
    ]

    pending = get_pending_friendships(db, current_user.id)
    others = get_users_by_ids(
        db, [f.user_id if f.friend_id == current_user.id else f.friend_id for f in pending]
    )
    for friendship in pending:
        is_received = friendship.friend_id == current_user.id
        other_id = friendship.user_id if is_received else friendship.friend_id
        other = others.get(other_id)
        friends.append(schemas.PendingFriend(
            id=friendship.id,
            user_id=other_id,
            display_name=other.display_name if other else "Unknown",
            email=other.email if other else "",
            avatar_url=other.avatar_url if other else None,
            is_pending_received=is_received,
            is_pending_sent=not is_received
        ))

    return friends


@router.post("/{friend_id}/remind")
def remind_friend(
    friend_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
    db: Session = Depends(get_db)
):
    get_user_or_404(db, friend_id)
    if not are_friends(db, current_user.id, friend_id):
        raise NotFoundError("Friendship not found")

    balance = calculate_direct_balances(db, current_user.id).get(friend_id, 0)
    if balance <= 0:
        raise LedgerValidationError("Friend doesn't owe you money")

    dispatcher.notify(
        db,
        friend_id,
        f"{get_display_name(current_user)} reminded you about a payment of {format_currency(balance)}",
        schemas.PaymentReminderData(actor_id=current_user.id, amount=balance)
    )
    return {"success": True}
