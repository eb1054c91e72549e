"""Members router: add users to a group."""

from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user, get_dispatcher
from errors import ConflictError, NotFoundError
from utils.display import get_display_name, user_summary
from utils.ledger import get_user_by_email, is_group_member
from utils.notifications import NotificationDispatcher
from utils.validation import verify_group_membership


router = APIRouter(prefix="/groups/{group_id}", tags=["members"])


@router.post("/members", response_model=schemas.UserSummary, status_code=status.HTTP_201_CREATED)
def add_group_member(
    group_id: int,
    member_add: schemas.GroupMemberAdd,
    current_user: Annotated[models.User, Depends(get_current_user)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
    db: Session = Depends(get_db)
):
    group = verify_group_membership(db, group_id, current_user.id)

    # Find user by email
    user = get_user_by_email(db, member_add.email)
    if not user:
        raise NotFoundError("User not found")

    # Check if already a member
    if is_group_member(db, group_id, user.id):
        raise ConflictError("User is already a member of this group")

    # Add member
    db.add(models.GroupMember(group_id=group_id, user_id=user.id))
    db.commit()

    dispatcher.notify(
        db,
        user.id,
        f'{get_display_name(current_user)} added you to "{group.name}" group',
        schemas.GroupAddedData(actor_id=current_user.id, group_id=group_id)
    )

    return user_summary(user)
