"""Expenses router: create and read expenses."""

from datetime import datetime
from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user, get_dispatcher
from errors import PermissionDeniedError
from utils.activity import build_expense_details
from utils.currency import format_currency
from utils.display import get_display_name
from utils.ledger import (
    create_expense_with_shares,
    get_expense_or_404,
    get_group_member_ids,
    get_user_expenses,
    is_group_member,
)
from utils.notifications import NotificationDispatcher
from utils.splits import calculate_shares, normalize_participants
from utils.validation import validate_expense_participants, verify_group_membership


router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.post("", response_model=schemas.ExpenseWithShares, status_code=status.HTTP_201_CREATED)
def create_expense(
    expense: schemas.ExpenseCreate,
    current_user: Annotated[models.User, Depends(get_current_user)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
    db: Session = Depends(get_db)
):
    payer_id = expense.payer_id or current_user.id

    participants = list(expense.participants)
    if expense.group_id is not None and not participants:
        # Split with the whole group
        verify_group_membership(db, expense.group_id, current_user.id)
        participants = [
            schemas.ExpenseParticipant(user_id=member_id)
            for member_id in get_group_member_ids(db, expense.group_id)
        ]
    participants = normalize_participants(participants, payer_id)

    # Validate all participants exist and may share the expense
    validate_expense_participants(
        db=db,
        current_user_id=current_user.id,
        payer_id=payer_id,
        participant_ids=[p.user_id for p in participants],
        group_id=expense.group_id
    )

    shares = calculate_shares(expense.amount, expense.split_type, participants, payer_id)

    db_expense = create_expense_with_shares(
        db,
        models.Expense(
            description=expense.description,
            amount=expense.amount,
            date=expense.date or datetime.utcnow(),
            payer_id=payer_id,
            group_id=expense.group_id,
            category=expense.category,
            split_type=expense.split_type,
            created_by_id=current_user.id
        ),
        [
            models.ExpenseShare(
                user_id=share.user_id,
                amount=share.amount,
                percentage=share.percentage,
                paid=share.paid
            )
            for share in shares
        ]
    )

    # Ledger is committed; now tell each participant what they owe
    for share in shares:
        if share.user_id == payer_id:
            continue
        dispatcher.notify(
            db,
            share.user_id,
            f'{get_display_name(current_user)} added "{db_expense.description}" ({format_currency(db_expense.amount)})',
            schemas.ExpenseAddedData(actor_id=current_user.id, expense_id=db_expense.id, amount=share.amount)
        )

    return schemas.ExpenseWithShares(
        **schemas.Expense.model_validate(db_expense).model_dump(),
        shares=shares
    )


@router.get("", response_model=list[schemas.ExpenseDetail])
def read_expenses(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    # Return expenses where user is involved (payer or share holder)
    return build_expense_details(db, get_user_expenses(db, current_user.id))


@router.get("/{expense_id}", response_model=schemas.ExpenseDetail)
def get_expense(
    expense_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    expense = get_expense_or_404(db, expense_id)
    detail = build_expense_details(db, [expense])[0]

    # Verify user has access (is payer, holds a share, or is in the same group)
    has_access = (
        expense.payer_id == current_user.id or
        any(share.user_id == current_user.id for share in detail.shares) or
        (expense.group_id is not None and is_group_member(db, expense.group_id, current_user.id))
    )
    if not has_access:
        raise PermissionDeniedError("You don't have access to this expense")

    return detail
