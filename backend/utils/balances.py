"""Balance calculation: direct friend balances and group balances.

Nothing here is stored. Every call recomputes from the expense, share and
settlement rows currently in the ledger. Amounts are integer cents; a
positive balance means the counterparty (or group) owes the user, a negative
one means the user owes them.

Settlements are netted in exactly one place: a settlement without a group
adjusts the direct balance between the two users, a settlement with a group
adjusts both users' balances in that group.
"""

from collections import defaultdict
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

import models
import schemas
from errors import LedgerValidationError
from utils.ledger import (
    get_accepted_friends,
    get_group_member_ids,
    get_group_or_404,
    get_user_groups,
    get_user_or_404,
)


def calculate_direct_balances(db: Session, user_id: int) -> dict[int, int]:
    """
    Net non-group balance between a user and everyone they share direct expenses or settlements with.

    Returns:
        Dictionary mapping counterparty user id to the signed balance in cents.
    """
    balances = defaultdict(int)

    # Others' shares of direct expenses the user paid: they owe the user
    owed_to_user = db.query(
        models.ExpenseShare.user_id, func.sum(models.ExpenseShare.amount)
    ).join(
        models.Expense, models.Expense.id == models.ExpenseShare.expense_id
    ).filter(
        models.Expense.payer_id == user_id,
        models.Expense.group_id.is_(None),
        models.ExpenseShare.user_id != user_id
    ).group_by(models.ExpenseShare.user_id).all()

    for friend_id, total in owed_to_user:
        balances[friend_id] += total or 0

    # The user's shares of direct expenses someone else paid: the user owes them
    owed_by_user = db.query(
        models.Expense.payer_id, func.sum(models.ExpenseShare.amount)
    ).join(
        models.Expense, models.Expense.id == models.ExpenseShare.expense_id
    ).filter(
        models.ExpenseShare.user_id == user_id,
        models.Expense.group_id.is_(None),
        models.Expense.payer_id != user_id
    ).group_by(models.Expense.payer_id).all()

    for friend_id, total in owed_by_user:
        balances[friend_id] -= total or 0

    # Settlements the user paid reduce what the friend owes
    paid = db.query(
        models.Settlement.receiver_id, func.sum(models.Settlement.amount)
    ).filter(
        models.Settlement.payer_id == user_id,
        models.Settlement.group_id.is_(None)
    ).group_by(models.Settlement.receiver_id).all()

    for friend_id, total in paid:
        balances[friend_id] -= total or 0

    # Settlements the user received do the opposite
    received = db.query(
        models.Settlement.payer_id, func.sum(models.Settlement.amount)
    ).filter(
        models.Settlement.receiver_id == user_id,
        models.Settlement.group_id.is_(None)
    ).group_by(models.Settlement.payer_id).all()

    for friend_id, total in received:
        balances[friend_id] += total or 0

    return dict(balances)


def get_direct_balance(db: Session, user_id: int, friend_id: int) -> int:
    """balance(user, friend); always equal to -balance(friend, user)."""
    get_user_or_404(db, user_id)
    get_user_or_404(db, friend_id)
    return calculate_direct_balances(db, user_id).get(friend_id, 0)


def calculate_group_balances(db: Session, group_id: int) -> dict[int, int]:
    """
    Net balance of every participant in a group.

    The payer of each expense is credited with the other participants' shares
    and each participant is debited their own share, so the balances of a
    group always sum to zero. Every member is present, with 0 if idle.
    """
    get_group_or_404(db, group_id)
    balances = {member_id: 0 for member_id in get_group_member_ids(db, group_id)}

    rows = db.query(
        models.Expense.payer_id, models.ExpenseShare.user_id, models.ExpenseShare.amount
    ).join(
        models.ExpenseShare, models.ExpenseShare.expense_id == models.Expense.id
    ).filter(models.Expense.group_id == group_id).all()

    for payer_id, participant_id, amount in rows:
        if participant_id == payer_id:
            continue  # The payer doesn't owe themselves
        balances[payer_id] = balances.get(payer_id, 0) + amount
        balances[participant_id] = balances.get(participant_id, 0) - amount

    settlements = db.query(models.Settlement).filter(models.Settlement.group_id == group_id).all()
    for settlement in settlements:
        balances[settlement.payer_id] = balances.get(settlement.payer_id, 0) + settlement.amount
        balances[settlement.receiver_id] = balances.get(settlement.receiver_id, 0) - settlement.amount

    return balances


def get_group_balance(db: Session, user_id: int, group_id: int) -> int:
    get_user_or_404(db, user_id)
    return calculate_group_balances(db, group_id).get(user_id, 0)


def calculate_user_group_balances(db: Session, user_id: int, group_ids: list[int]) -> dict[int, int]:
    """The user's balance in each of the given groups, computed in a handful of queries."""
    balances = {group_id: 0 for group_id in group_ids}
    if not group_ids:
        return balances

    owed_to_user = db.query(
        models.Expense.group_id, func.sum(models.ExpenseShare.amount)
    ).join(
        models.Expense, models.Expense.id == models.ExpenseShare.expense_id
    ).filter(
        models.Expense.group_id.in_(group_ids),
        models.Expense.payer_id == user_id,
        models.ExpenseShare.user_id != user_id
    ).group_by(models.Expense.group_id).all()

    for group_id, total in owed_to_user:
        balances[group_id] += total or 0

    owed_by_user = db.query(
        models.Expense.group_id, func.sum(models.ExpenseShare.amount)
    ).join(
        models.Expense, models.Expense.id == models.ExpenseShare.expense_id
    ).filter(
        models.Expense.group_id.in_(group_ids),
        models.Expense.payer_id != user_id,
        models.ExpenseShare.user_id == user_id
    ).group_by(models.Expense.group_id).all()

    for group_id, total in owed_by_user:
        balances[group_id] -= total or 0

    settlements = db.query(models.Settlement).filter(
        models.Settlement.group_id.in_(group_ids),
        (models.Settlement.payer_id == user_id) | (models.Settlement.receiver_id == user_id)
    ).all()

    for settlement in settlements:
        if settlement.payer_id == user_id:
            balances[settlement.group_id] += settlement.amount
        else:
            balances[settlement.group_id] -= settlement.amount

    return balances


def get_user_balances(db: Session, user_id: int) -> schemas.UserBalances:
    """
    Balance per accepted friend and per group for the dashboard, friend list and group list.

    Friends and groups with no activity are reported with amount 0 rather
    than omitted, so every caller sees the same set of counterparties.
    """
    get_user_or_404(db, user_id)

    direct = calculate_direct_balances(db, user_id)
    friend_balances = [
        schemas.FriendBalance(
            id=friend.id,
            name=friend.display_name,
            avatar_url=friend.avatar_url,
            amount=direct.get(friend.id, 0)
        )
        for friend in get_accepted_friends(db, user_id)
    ]

    groups = get_user_groups(db, user_id)
    group_totals = calculate_user_group_balances(db, user_id, [g.id for g in groups])
    group_balances = [
        schemas.GroupBalance(id=group.id, name=group.name, amount=group_totals[group.id])
        for group in groups
    ]

    return schemas.UserBalances(friend_balances=friend_balances, group_balances=group_balances)


def summarize_balances(balances: schemas.UserBalances) -> schemas.BalanceSummary:
    total = 0
    you_owe = 0
    you_are_owed = 0
    for balance in [*balances.friend_balances, *balances.group_balances]:
        total += balance.amount
        if balance.amount < 0:
            you_owe += -balance.amount
        elif balance.amount > 0:
            you_are_owed += balance.amount
    return schemas.BalanceSummary(total_balance=total, you_owe=you_owe, you_are_owed=you_are_owed)


def calculate_settlement_amount(
    db: Session,
    payer_id: int,
    receiver_id: int,
    group_id: Optional[int] = None
) -> int:
    """
    Amount the payer must settle with the receiver to clear what they owe.

    Direct: the payer must currently owe the receiver (negative balance) and
    settles all of it. Group: the payer must owe the group and the receiver
    must be owed by it; the amount is the smaller of the two.

    Raises:
        LedgerValidationError: if there is nothing to settle.
    """
    if payer_id == receiver_id:
        raise LedgerValidationError("Cannot settle with yourself")

    if group_id is None:
        balance = get_direct_balance(db, payer_id, receiver_id)
        if balance >= 0:
            raise LedgerValidationError("You don't owe this friend any money")
        return -balance

    get_user_or_404(db, payer_id)
    get_user_or_404(db, receiver_id)
    group_balances = calculate_group_balances(db, group_id)
    owed = -group_balances.get(payer_id, 0)
    receivable = group_balances.get(receiver_id, 0)
    if owed <= 0:
        raise LedgerValidationError("You don't owe anything in this group")
    if receivable <= 0:
        raise LedgerValidationError("This member is not owed anything in this group")
    return min(owed, receivable)
