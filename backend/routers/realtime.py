"""Real-time router: WebSocket endpoint that binds a socket to a user for pushes."""

import logging
import os
from typing import Callable, Optional
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

import auth
import models
import schemas
from database import get_session_factory
from utils.realtime import WebSocketConnection

logger = logging.getLogger(__name__)

# When set, auth messages must carry an access token for the same user
REQUIRE_TOKEN = os.environ.get("REALTIME_REQUIRE_TOKEN", "false").lower() in ("1", "true", "yes")

router = APIRouter(tags=["realtime"])


def check_socket_identity(
    session_factory: Callable[[], Session],
    message: schemas.AuthMessage
) -> Optional[str]:
    """Return why an auth message is rejected, or None if it is accepted.

    Opens its own short session so an idle socket never holds a connection.
    """
    with session_factory() as db:
        user = db.get(models.User, message.user_id)
        if user is None:
            return "User not found"
        if message.token is None:
            return "Access token required" if REQUIRE_TOKEN else None
        if auth.decode_access_token(message.token) != user.email:
            return "Access token does not match user"
        return None


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    session_factory: Callable[[], Session] = Depends(get_session_factory)
):
    """
    Accept a client connection and wait for it to identify itself.

    Clients send {"type": "auth", "userId": <id>} to start receiving pushes and
    {"type": "unsubscribe"} to stop. An auth message may also carry the
    client's access token as "token". Anything else gets an error message
    back; the socket stays open.
    """
    channel = websocket.app.state.realtime
    connection = WebSocketConnection(websocket)
    user_id = None

    await websocket.accept()
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = schemas.client_message_adapter.validate_json(raw)
            except ValidationError:
                await websocket.send_json({"type": "error", "detail": "Unrecognized message"})
                continue

            if isinstance(message, schemas.AuthMessage):
                rejected = await run_in_threadpool(check_socket_identity, session_factory, message)
                if rejected:
                    await websocket.send_json({"type": "auth_error", "detail": rejected})
                    continue
                # Re-auth moves the socket to the new user
                if user_id is not None:
                    channel.unregister(user_id, connection)
                user_id = message.user_id
                channel.register(user_id, connection)
                logger.info("Real-time connection authenticated for user %s", user_id)
                await websocket.send_json({"type": "auth_success", "user_id": user_id})
            else:
                if user_id is not None:
                    channel.unregister(user_id, connection)
                    user_id = None
                await websocket.send_json({"type": "unsubscribed"})
    except WebSocketDisconnect:
        logger.debug("Real-time client disconnected")
    finally:
        if user_id is not None:
            channel.unregister(user_id, connection)
