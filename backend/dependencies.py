"""Shared dependencies for authentication, the real-time channel and notifications."""

from typing import Annotated
from fastapi import BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

import auth
import schemas
from database import get_db
from utils.ledger import get_user_by_email
from utils.notifications import NotificationDispatcher
from utils.realtime import RealtimeChannel


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Session = Depends(get_db)
):
    """Get the current authenticated user from the JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    email = auth.decode_access_token(token)
    if email is None:
        raise credentials_exception
    token_data = schemas.TokenData(email=email)
    user = get_user_by_email(db, email=token_data.email)
    if user is None:
        raise credentials_exception
    return user


def get_realtime_channel(request: Request) -> RealtimeChannel:
    """The process-wide channel created with the app."""
    return request.app.state.realtime


def get_dispatcher(
    background_tasks: BackgroundTasks,
    channel: Annotated[RealtimeChannel, Depends(get_realtime_channel)],
) -> NotificationDispatcher:
    """Dispatcher whose pushes run as background tasks after the response."""
    return NotificationDispatcher(channel, schedule=background_tasks.add_task)
