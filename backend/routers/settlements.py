"""Settlements router: settle up with a friend or within a group."""

from datetime import datetime
from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user, get_dispatcher
from errors import NotFoundError
from utils.balances import calculate_settlement_amount
from utils.currency import format_currency
from utils.display import get_display_name
from utils.ledger import are_friends, create_settlement, get_settlements, get_user_or_404, is_group_member
from utils.notifications import NotificationDispatcher
from utils.validation import verify_group_membership


router = APIRouter(prefix="/settlements", tags=["settlements"])


@router.post("", response_model=schemas.Settlement, status_code=status.HTTP_201_CREATED)
def settle_up(
    settlement: schemas.SettlementCreate,
    current_user: Annotated[models.User, Depends(get_current_user)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
    db: Session = Depends(get_db)
):
    """
    Pay off what the current user owes.

    Without group_id this settles the full direct balance with a friend. With
    group_id it settles against the receiver's credit in that group.
    """
    receiver = get_user_or_404(db, settlement.friend_id)

    if settlement.group_id is None:
        if not are_friends(db, current_user.id, receiver.id):
            raise NotFoundError("Friend not found")
    else:
        verify_group_membership(db, settlement.group_id, current_user.id)
        if not is_group_member(db, settlement.group_id, receiver.id):
            raise NotFoundError("Member not found in this group")

    amount = calculate_settlement_amount(db, current_user.id, receiver.id, settlement.group_id)

    db_settlement = create_settlement(db, models.Settlement(
        payer_id=current_user.id,
        receiver_id=receiver.id,
        amount=amount,
        date=datetime.utcnow(),
        description=settlement.description or "Settlement",
        group_id=settlement.group_id
    ))

    dispatcher.notify(
        db,
        receiver.id,
        f"{get_display_name(current_user)} settled up {format_currency(amount)}",
        schemas.SettlementReceivedData(
            actor_id=current_user.id,
            settlement_id=db_settlement.id,
            amount=amount
        )
    )

    return db_settlement


@router.get("", response_model=list[schemas.Settlement])
def read_settlements(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    return get_settlements(db, current_user.id)
