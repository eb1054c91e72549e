"""Ledger store: lookups and inserts for users, friendships, groups, expenses and settlements.

No business rules live here beyond referential lookups. Unknown ids raise
NotFoundError; multi-row writes that form one logical operation commit together.
"""

import logging
from typing import Iterable, Optional
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import models
from errors import NotFoundError

logger = logging.getLogger(__name__)


# Users
def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    """Get a user by their email address, ignoring case."""
    return db.query(models.User).filter(func.lower(models.User.email) == email.lower()).first()


def get_user_by_username(db: Session, username: str) -> Optional[models.User]:
    return db.query(models.User).filter(func.lower(models.User.username) == username.lower()).first()


def get_user_or_404(db: Session, user_id: int) -> models.User:
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


def get_users_by_ids(db: Session, user_ids: Iterable[int]) -> dict[int, models.User]:
    """Fetch many users in one query, keyed by id."""
    ids = set(user_ids)
    if not ids:
        return {}
    users = db.query(models.User).filter(models.User.id.in_(ids)).all()
    return {u.id: u for u in users}


# Friendships
def get_friendship(db: Session, user_id: int, other_id: int) -> Optional[models.Friendship]:
    """The single friendship row for an unordered pair, whoever initiated it."""
    low, high = sorted((user_id, other_id))
    return db.query(models.Friendship).filter(
        models.Friendship.user_low_id == low,
        models.Friendship.user_high_id == high
    ).first()


def get_friendship_or_404(db: Session, friendship_id: int) -> models.Friendship:
    friendship = db.query(models.Friendship).filter(models.Friendship.id == friendship_id).first()
    if not friendship:
        raise NotFoundError("Friendship not found")
    return friendship


def get_accepted_friends(db: Session, user_id: int) -> list[models.User]:
    friendships = db.query(models.Friendship).filter(
        (models.Friendship.user_id == user_id) | (models.Friendship.friend_id == user_id),
        models.Friendship.status == "accepted"
    ).all()

    friend_ids = [f.friend_id if f.user_id == user_id else f.user_id for f in friendships]
    users = get_users_by_ids(db, friend_ids)
    return [users[fid] for fid in friend_ids if fid in users]


def get_pending_friendships(db: Session, user_id: int) -> list[models.Friendship]:
    return db.query(models.Friendship).filter(
        (models.Friendship.user_id == user_id) | (models.Friendship.friend_id == user_id),
        models.Friendship.status == "pending"
    ).all()


def are_friends(db: Session, user_id: int, other_id: int) -> bool:
    friendship = get_friendship(db, user_id, other_id)
    return friendship is not None and friendship.status == "accepted"


# Groups
def get_group_or_404(db: Session, group_id: int) -> models.Group:
    """Get a group by ID or raise NotFoundError."""
    group = db.query(models.Group).filter(models.Group.id == group_id).first()
    if not group:
        raise NotFoundError("Group not found")
    return group


def get_user_groups(db: Session, user_id: int) -> list[models.Group]:
    return db.query(models.Group).join(
        models.GroupMember,
        models.Group.id == models.GroupMember.group_id
    ).filter(models.GroupMember.user_id == user_id).order_by(models.Group.id).all()


def get_group_members(db: Session, group_id: int) -> list[models.User]:
    return db.query(models.User).join(
        models.GroupMember,
        models.User.id == models.GroupMember.user_id
    ).filter(models.GroupMember.group_id == group_id).order_by(models.GroupMember.id).all()


def get_group_member_ids(db: Session, group_id: int) -> list[int]:
    rows = db.query(models.GroupMember.user_id).filter(
        models.GroupMember.group_id == group_id
    ).order_by(models.GroupMember.id).all()
    return [row[0] for row in rows]


def is_group_member(db: Session, group_id: int, user_id: int) -> bool:
    return db.query(models.GroupMember).filter(
        models.GroupMember.group_id == group_id,
        models.GroupMember.user_id == user_id
    ).first() is not None


def create_group_with_members(db: Session, group: models.Group, member_ids: list[int]) -> models.Group:
    """Insert a group and its memberships in one transaction."""
    try:
        db.add(group)
        db.flush()
        for user_id in member_ids:
            db.add(models.GroupMember(group_id=group.id, user_id=user_id))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(group)
    logger.info("Created group %s with %d members", group.id, len(member_ids))
    return group


# Expenses
def create_expense_with_shares(
    db: Session,
    expense: models.Expense,
    shares: list[models.ExpenseShare]
) -> models.Expense:
    """Insert an expense and all of its shares atomically.

    Either every row is committed or none is; an expense with only some of
    its shares is never visible to balance reads.
    """
    try:
        db.add(expense)
        db.flush()
        for share in shares:
            share.expense_id = expense.id
            db.add(share)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(expense)
    logger.info("Created expense %s (%d cents, %d shares)", expense.id, expense.amount, len(shares))
    return expense


def get_expense_or_404(db: Session, expense_id: int) -> models.Expense:
    expense = db.query(models.Expense).filter(models.Expense.id == expense_id).first()
    if not expense:
        raise NotFoundError("Expense not found")
    return expense


def get_shares_for_expenses(db: Session, expense_ids: Iterable[int]) -> dict[int, list[models.ExpenseShare]]:
    """Batch-load shares for many expenses, keyed by expense id."""
    ids = list(expense_ids)
    result = {expense_id: [] for expense_id in ids}
    if not ids:
        return result
    shares = db.query(models.ExpenseShare).filter(
        models.ExpenseShare.expense_id.in_(ids)
    ).order_by(models.ExpenseShare.id).all()
    for share in shares:
        result[share.expense_id].append(share)
    return result


def get_user_expenses(db: Session, user_id: int) -> list[models.Expense]:
    """Expenses where the user is the payer or holds a share, newest first."""
    subquery = select(models.ExpenseShare.expense_id).where(
        models.ExpenseShare.user_id == user_id
    )
    return db.query(models.Expense).filter(
        (models.Expense.payer_id == user_id) |
        (models.Expense.id.in_(subquery))
    ).order_by(models.Expense.date.desc(), models.Expense.id.desc()).all()


def get_group_expenses(db: Session, group_id: int) -> list[models.Expense]:
    return db.query(models.Expense).filter(
        models.Expense.group_id == group_id
    ).order_by(models.Expense.date.desc(), models.Expense.id.desc()).all()


# Settlements
def create_settlement(db: Session, settlement: models.Settlement) -> models.Settlement:
    db.add(settlement)
    db.commit()
    db.refresh(settlement)
    logger.info(
        "Recorded settlement %s: user %s paid user %s %d cents",
        settlement.id, settlement.payer_id, settlement.receiver_id, settlement.amount
    )
    return settlement


def get_settlements(db: Session, user_id: int) -> list[models.Settlement]:
    """Settlements where the user paid or received, newest first."""
    return db.query(models.Settlement).filter(
        (models.Settlement.payer_id == user_id) | (models.Settlement.receiver_id == user_id)
    ).order_by(models.Settlement.date.desc(), models.Settlement.id.desc()).all()
