"""Split calculation utilities for equal, unequal and percentage expenses.

All amounts are integer cents. Every calculation returns one portion per
participant and the portions always sum to the expense amount exactly.
Remainder cents are handed out one at a time to non-payer participants in
ascending user-id order, then to the payer if any are left.
"""

import schemas
from errors import LedgerValidationError


def remainder_order(participant_ids: list[int], payer_id: int) -> list[int]:
    """Order in which leftover cents are assigned."""
    others = sorted(pid for pid in participant_ids if pid != payer_id)
    return others + [payer_id] if payer_id in participant_ids else others


def _distribute(base: dict[int, int], remainder: int, payer_id: int) -> dict[int, int]:
    portions = dict(base)
    order = remainder_order(list(portions), payer_id)
    # remainder is always smaller than the number of participants
    for pid in order[:remainder]:
        portions[pid] += 1
    return portions


def calculate_equal_portions(amount: int, participant_ids: list[int], payer_id: int) -> dict[int, int]:
    """Split amount equally; 1000 among three is 334/333/333."""
    if not participant_ids:
        raise LedgerValidationError("An expense needs at least one participant")
    count = len(participant_ids)
    base = {pid: amount // count for pid in participant_ids}
    return _distribute(base, amount % count, payer_id)


def calculate_unequal_portions(amount: int, participants: list[schemas.ExpenseParticipant]) -> dict[int, int]:
    portions = {}
    for p in participants:
        if p.amount is None:
            raise LedgerValidationError(f"Missing amount for participant {p.user_id}")
        portions[p.user_id] = p.amount

    total = sum(portions.values())
    if total != amount:
        raise LedgerValidationError(
            f"Split amounts do not sum to total expense amount. Total: {amount}, Sum: {total}"
        )
    return portions


def calculate_percentage_portions(
    amount: int,
    participants: list[schemas.ExpenseParticipant],
    payer_id: int
) -> dict[int, int]:
    percentages = {}
    for p in participants:
        if p.percentage is None:
            raise LedgerValidationError(f"Missing percentage for participant {p.user_id}")
        percentages[p.user_id] = p.percentage

    total_percentage = sum(percentages.values())
    if total_percentage != 100:
        raise LedgerValidationError(
            f"Split percentages must sum to 100, got {total_percentage}"
        )

    base = {pid: amount * pct // 100 for pid, pct in percentages.items()}
    return _distribute(base, amount - sum(base.values()), payer_id)


def normalize_participants(
    participants: list[schemas.ExpenseParticipant],
    payer_id: int
) -> list[schemas.ExpenseParticipant]:
    """Reject duplicate user ids and make sure the payer takes part."""
    seen = set()
    result = []
    for p in participants:
        if p.user_id in seen:
            raise LedgerValidationError(f"Participant {p.user_id} is listed more than once")
        seen.add(p.user_id)
        result.append(p)

    if payer_id not in seen:
        # The payer was left out; they take part with a zero portion in explicit splits
        result.append(schemas.ExpenseParticipant(user_id=payer_id, amount=0, percentage=0))
    return result


def calculate_portions(
    amount: int,
    split_type: str,
    participants: list[schemas.ExpenseParticipant],
    payer_id: int
) -> dict[int, int]:
    """Each participant's portion of the expense, payer included."""
    if amount <= 0:
        raise LedgerValidationError("Expense amount must be greater than zero")

    participants = normalize_participants(participants, payer_id)
    participant_ids = [p.user_id for p in participants]

    if split_type == "equal":
        return calculate_equal_portions(amount, participant_ids, payer_id)
    if split_type == "unequal":
        return calculate_unequal_portions(amount, participants)
    if split_type == "percentage":
        return calculate_percentage_portions(amount, participants, payer_id)
    raise LedgerValidationError(f"Unknown split type '{split_type}'")


def calculate_shares(
    amount: int,
    split_type: str,
    participants: list[schemas.ExpenseParticipant],
    payer_id: int
) -> list[schemas.ExpenseShare]:
    """
    Turn portions into persisted shares.

    The payer does not owe themselves: their share is always 0 and marked paid,
    so the shares sum to the amount minus the payer's own portion.
    """
    participants = normalize_participants(participants, payer_id)
    portions = calculate_portions(amount, split_type, participants, payer_id)
    percentages = {p.user_id: p.percentage for p in participants} if split_type == "percentage" else {}

    shares = []
    for user_id, portion in portions.items():
        is_payer = user_id == payer_id
        shares.append(schemas.ExpenseShare(
            user_id=user_id,
            amount=0 if is_payer else portion,
            percentage=percentages.get(user_id),
            paid=is_payer
        ))
    return shares
