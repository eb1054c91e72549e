"""
Display utilities for user names in API responses
"""
from typing import Optional
import models
import schemas


UNKNOWN_USER_ID = 0


def get_display_name(user: Optional[models.User]) -> str:
    """Use display_name if available, otherwise the username."""
    if not user:
        return "Unknown User"
    return user.display_name or user.username


def user_summary(user: Optional[models.User]) -> schemas.UserSummary:
    """
    Public summary of a user for payer, actor and member lists.

    Args:
        user: The User object, or None if it no longer exists

    Returns:
        UserSummary, with a placeholder for missing users
    """
    if not user:
        return schemas.UserSummary(id=UNKNOWN_USER_ID, display_name="Unknown User")
    return schemas.UserSummary(
        id=user.id,
        display_name=get_display_name(user),
        avatar_url=user.avatar_url
    )
