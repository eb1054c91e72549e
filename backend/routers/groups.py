"""Groups router: create, list and read groups with balances."""

from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user, get_dispatcher
from utils.activity import build_expense_details
from utils.balances import calculate_group_balances, calculate_user_group_balances
from utils.display import get_display_name, user_summary
from utils.ledger import (
    create_group_with_members,
    get_group_expenses,
    get_group_members,
    get_user_groups,
    get_user_or_404,
)
from utils.notifications import NotificationDispatcher
from utils.validation import verify_group_membership


router = APIRouter(prefix="/groups", tags=["groups"])


@router.post("", response_model=schemas.GroupSummary, status_code=status.HTTP_201_CREATED)
def create_group(
    group: schemas.GroupCreate,
    current_user: Annotated[models.User, Depends(get_current_user)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
    db: Session = Depends(get_db)
):
    # Creator first, then each other member once
    member_ids = [current_user.id]
    for member_id in group.member_ids:
        if member_id not in member_ids:
            get_user_or_404(db, member_id)
            member_ids.append(member_id)

    db_group = create_group_with_members(
        db,
        models.Group(name=group.name, type=group.type, creator_id=current_user.id),
        member_ids
    )

    for member_id in member_ids[1:]:
        dispatcher.notify(
            db,
            member_id,
            f'{get_display_name(current_user)} added you to "{db_group.name}" group',
            schemas.GroupAddedData(actor_id=current_user.id, group_id=db_group.id)
        )

    return schemas.GroupSummary(
        id=db_group.id,
        name=db_group.name,
        type=db_group.type,
        members=[user_summary(m) for m in get_group_members(db, db_group.id)],
        balance=0
    )


@router.get("", response_model=list[schemas.GroupSummary])
def read_groups(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    groups = get_user_groups(db, current_user.id)
    balances = calculate_user_group_balances(db, current_user.id, [g.id for g in groups])

    return [
        schemas.GroupSummary(
            id=group.id,
            name=group.name,
            type=group.type,
            members=[user_summary(m) for m in get_group_members(db, group.id)],
            balance=balances[group.id]
        )
        for group in groups
    ]


@router.get("/{group_id}", response_model=schemas.GroupDetail)
def get_group(
    group_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    group = verify_group_membership(db, group_id, current_user.id)

    balances = calculate_group_balances(db, group_id)
    members = [
        schemas.GroupMemberBalance(
            id=member.id,
            display_name=get_display_name(member),
            avatar_url=member.avatar_url,
            balance=balances.get(member.id, 0)
        )
        for member in get_group_members(db, group_id)
    ]

    return schemas.GroupDetail(
        id=group.id,
        name=group.name,
        type=group.type,
        created_at=group.created_at,
        members=members,
        expenses=build_expense_details(db, get_group_expenses(db, group_id))
    )
