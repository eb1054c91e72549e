"""Expense listings and the activity feed shared by the expenses, groups, dashboard and activity routers."""

from datetime import datetime, timedelta
from sqlalchemy.orm import Session

import models
import schemas
from errors import LedgerValidationError
from utils.display import get_display_name, user_summary
from utils.ledger import get_settlements, get_shares_for_expenses, get_user_expenses, get_users_by_ids


ACTIVITY_TYPES = ("all", "expenses", "settlements")

# Approximate calendar windows for the activity filter
TIMEFRAMES = {
    "all": None,
    "month": timedelta(days=30),
    "3months": timedelta(days=90),
    "year": timedelta(days=365),
}


def _group_names(db: Session, group_ids) -> dict[int, str]:
    ids = {gid for gid in group_ids if gid is not None}
    if not ids:
        return {}
    groups = db.query(models.Group).filter(models.Group.id.in_(ids)).all()
    return {g.id: g.name for g in groups}


def build_expense_details(db: Session, expenses: list[models.Expense]) -> list[schemas.ExpenseDetail]:
    """Expenses with payer, group name and named shares, loaded in batches."""
    shares_by_expense = get_shares_for_expenses(db, [e.id for e in expenses])

    user_ids = {e.payer_id for e in expenses}
    for shares in shares_by_expense.values():
        user_ids.update(s.user_id for s in shares)
    users = get_users_by_ids(db, user_ids)
    group_names = _group_names(db, [e.group_id for e in expenses])

    result = []
    for expense in expenses:
        result.append(schemas.ExpenseDetail(
            id=expense.id,
            description=expense.description,
            amount=expense.amount,
            date=expense.date,
            payer_id=expense.payer_id,
            group_id=expense.group_id,
            category=expense.category,
            split_type=expense.split_type,
            created_by_id=expense.created_by_id,
            created_at=expense.created_at,
            paid_by=user_summary(users.get(expense.payer_id)),
            group_name=group_names.get(expense.group_id),
            shares=[
                schemas.ExpenseShareDetail(
                    user_id=share.user_id,
                    amount=share.amount,
                    percentage=share.percentage,
                    paid=share.paid,
                    display_name=get_display_name(users.get(share.user_id))
                )
                for share in shares_by_expense[expense.id]
            ]
        ))
    return result


def _expense_activities(db: Session, user_id: int) -> list[schemas.ExpenseActivity]:
    expenses = get_user_expenses(db, user_id)
    shares_by_expense = get_shares_for_expenses(db, [e.id for e in expenses])
    payers = get_users_by_ids(db, [e.payer_id for e in expenses])
    group_names = _group_names(db, [e.group_id for e in expenses])

    activities = []
    for expense in expenses:
        payer = payers.get(expense.payer_id)
        is_user_payer = expense.payer_id == user_id

        user_share = 0
        if not is_user_payer:
            share = next((s for s in shares_by_expense[expense.id] if s.user_id == user_id), None)
            if share:
                user_share = share.amount

        activities.append(schemas.ExpenseActivity(
            id=expense.id,
            title="You added an expense" if is_user_payer else f"{get_display_name(payer)} added an expense",
            description=expense.description,
            amount=user_share,
            created_at=expense.created_at,
            group_name=group_names.get(expense.group_id),
            user=user_summary(payer)
        ))
    return activities


def _settlement_activities(db: Session, user_id: int) -> list[schemas.SettlementActivity]:
    settlements = get_settlements(db, user_id)
    others = get_users_by_ids(
        db, [s.receiver_id if s.payer_id == user_id else s.payer_id for s in settlements]
    )

    activities = []
    for settlement in settlements:
        is_user_payer = settlement.payer_id == user_id
        other = others.get(settlement.receiver_id if is_user_payer else settlement.payer_id)
        activities.append(schemas.SettlementActivity(
            id=f"settlement-{settlement.id}",
            title="You settled up" if is_user_payer else f"{get_display_name(other)} settled up",
            description=settlement.description or "",
            amount=settlement.amount,
            created_at=settlement.date,
            user=user_summary(other)
        ))
    return activities


def build_activities(
    db: Session,
    user_id: int,
    activity_type: str = "all",
    timeframe: str = "all",
    now: datetime = None
) -> list:
    """Expense and settlement activity for a user, newest first."""
    if activity_type not in ACTIVITY_TYPES:
        raise LedgerValidationError(f"Activity type must be one of {list(ACTIVITY_TYPES)}")
    if timeframe not in TIMEFRAMES:
        raise LedgerValidationError(f"Timeframe must be one of {list(TIMEFRAMES)}")

    activities = []
    if activity_type in ("all", "expenses"):
        activities.extend(_expense_activities(db, user_id))
    if activity_type in ("all", "settlements"):
        activities.extend(_settlement_activities(db, user_id))

    window = TIMEFRAMES[timeframe]
    if window is not None:
        cutoff = (now or datetime.utcnow()) - window
        activities = [a for a in activities if a.created_at >= cutoff]

    activities.sort(key=lambda a: a.created_at, reverse=True)
    return activities
