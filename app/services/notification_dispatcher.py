"""
Notification dispatcher: persist one message per target, then push.

Dispatch runs after the triggering response has been sent (FastAPI
BackgroundTasks) with its own database session, so it never shares a
transaction with the state change that produced it. Every failure here is
logged and contained.
"""
import logging

from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.models.message import Message
from app.models.types import utcnow
from app.services.notifications import Notification, render
from app.services.realtime import Publisher

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, session_factory: sessionmaker, publisher: Publisher):
        self.session_factory = session_factory
        self.publisher = publisher

    def schedule(self, background_tasks: BackgroundTasks, notification: Notification) -> None:
        """Queue delivery to run once the response is on its way."""
        background_tasks.add_task(self.dispatch, notification)

    def dispatch(self, notification: Notification) -> int:
        """
        Deliver a notification.

        Each target's message is committed on its own so one failing insert
        does not affect the others. Returns the number of messages stored.
        """
        rendered = render(notification)
        content = rendered.content
        stored = 0
        # A rollback expires every instance in the session, so read the
        # timestamp while the committed row is still loaded.
        created_at = None

        db = self.session_factory()
        try:
            for target in rendered.targets:
                message = Message(sender_id=None, receiver_id=target, is_group=False, content=content)
                try:
                    db.add(message)
                    db.commit()
                    if created_at is None:
                        created_at = message.created_at
                    stored += 1
                except SQLAlchemyError as e:
                    db.rollback()
                    logger.error(
                        "Could not store %s notification for user %s: %s",
                        type(notification).__name__, target, e,
                    )
        finally:
            db.close()

        try:
            payload = {
                "targets": rendered.targets,
                "message": {
                    "sender_id": None,
                    "content": content,
                    "created_at": (created_at or utcnow()).isoformat(),
                },
            }
            self.publisher.publish(payload)
        except Exception as e:
            logger.warning("Realtime push of %s failed: %s", type(notification).__name__, e)

        return stored
