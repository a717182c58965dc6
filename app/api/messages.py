"""Chat messages and the notification inbox."""

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.dependencies import get_db, get_message_service, get_publisher
from app.models import User
from app.services.auth.dependencies import get_current_user
from app.services.message_service import MessageService
from app.services.realtime import Publisher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["messages"])


class MessageCreate(BaseModel):
    receiver_id: int
    content: str = Field(min_length=1, max_length=5000)
    is_group: bool = False


@router.post("/message", status_code=201)
def send_message(
    body: MessageCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    messages: MessageService = Depends(get_message_service),
    publisher: Publisher = Depends(get_publisher),
):
    """Store a message and push it to the recipients. Push is best effort."""
    message, targets = messages.send(db, user, body.receiver_id, body.content, body.is_group)
    payload = message.to_dict()
    try:
        publisher.publish({"targets": targets, "message": payload})
    except Exception as e:
        logger.warning("Realtime push of message %s failed: %s", message.id, e)
    return payload


@router.get("/messages")
def conversation(
    receiver_id: int,
    is_group: bool = False,
    limit: int = Query(100, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    messages: MessageService = Depends(get_message_service),
):
    rows = messages.conversation(db, user, receiver_id, is_group=is_group, limit=limit)
    return [message.to_dict() for message in rows]


@router.get("/notifications")
def notifications(
    limit: int = Query(50, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    messages: MessageService = Depends(get_message_service),
):
    return [message.to_dict() for message in messages.notifications(db, user, limit=limit)]
