"""Validation utilities for group membership, access control, and expense participants."""

from typing import Optional
from sqlalchemy.orm import Session

import models
from errors import LedgerValidationError, NotFoundError, PermissionDeniedError
from utils.ledger import (
    are_friends,
    get_group_member_ids,
    get_group_or_404,
    get_user_or_404,
    get_users_by_ids,
    is_group_member,
)


def verify_group_membership(db: Session, group_id: int, user_id: int) -> models.Group:
    """Verify that a user is a member of a group, raise PermissionDeniedError if not."""
    group = get_group_or_404(db, group_id)
    if not is_group_member(db, group_id, user_id):
        raise PermissionDeniedError("You are not a member of this group")
    return group


def validate_expense_participants(
    db: Session,
    current_user_id: int,
    payer_id: int,
    participant_ids: list[int],
    group_id: Optional[int] = None
) -> None:
    """
    Validate that the payer and all participants exist and may share this expense.

    Group expenses: the current user, the payer and every participant must be
    group members. Direct expenses: every participant other than the payer must
    be an accepted friend of the payer.
    """
    get_user_or_404(db, payer_id)

    users = get_users_by_ids(db, participant_ids)
    for user_id in participant_ids:
        if user_id not in users:
            raise NotFoundError(f"User with ID {user_id} not found in participants")

    if current_user_id != payer_id and current_user_id not in participant_ids:
        raise PermissionDeniedError("You must be the payer or a participant of the expense")

    if group_id is not None:
        verify_group_membership(db, group_id, current_user_id)
        member_ids = set(get_group_member_ids(db, group_id))
        for user_id in [payer_id, *participant_ids]:
            if user_id not in member_ids:
                raise LedgerValidationError(f"User with ID {user_id} is not a member of this group")
        return

    for user_id in participant_ids:
        if user_id != payer_id and not are_friends(db, payer_id, user_id):
            raise LedgerValidationError(f"User with ID {user_id} is not a friend of the payer")
