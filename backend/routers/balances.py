"""Balances router: per-friend and per-group balances and the dashboard summary."""

from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils.activity import build_activities
from utils.balances import calculate_group_balances, get_user_balances, summarize_balances
from utils.display import get_display_name
from utils.ledger import get_users_by_ids
from utils.validation import verify_group_membership


router = APIRouter(tags=["balances"])

RECENT_ACTIVITY_LIMIT = 10


@router.get("/balances", response_model=schemas.UserBalances)
def get_balances(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    return get_user_balances(db, current_user.id)


@router.get("/groups/{group_id}/balances", response_model=list[schemas.GroupMemberBalance])
def get_group_balances(
    group_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    verify_group_membership(db, group_id, current_user.id)

    balances = calculate_group_balances(db, group_id)
    users = get_users_by_ids(db, balances.keys())
    return [
        schemas.GroupMemberBalance(
            id=user_id,
            display_name=get_display_name(users.get(user_id)),
            avatar_url=users[user_id].avatar_url if user_id in users else None,
            balance=amount
        )
        for user_id, amount in balances.items()
    ]


@router.get("/dashboard", response_model=schemas.Dashboard)
def get_dashboard(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    balances = get_user_balances(db, current_user.id)
    return schemas.Dashboard(
        summary=summarize_balances(balances),
        activities=build_activities(db, current_user.id)[:RECENT_ACTIVITY_LIMIT],
        friend_balances=balances.friend_balances,
        group_balances=balances.group_balances
    )
