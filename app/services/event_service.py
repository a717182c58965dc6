"""Group events and attendance."""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.errors import BadRequestError
from app.models import AttendanceStatus, Event, EventParticipant, Group, User
from app.services import notifications as n
from app.services.membership_service import MembershipService
from app.services.visibility import VisibilityResolver, deny

logger = logging.getLogger(__name__)


class EventService:
    def __init__(self, visibility: VisibilityResolver, membership: MembershipService):
        self.visibility = visibility
        self.membership = membership

    def create_event(
        self,
        db: Session,
        author: User,
        group_id: int,
        title: str,
        description: str,
        date_time: datetime,
    ) -> tuple[Event, n.EventCreated]:
        """Create an event in a group the author belongs to.

        Returns the event and the notification for the other members.
        """
        group: Group = self.membership.get_group(db, group_id)
        if not self.visibility.is_member(db, group.id, author.id):
            raise deny(author.id, "Only group members can create events")
        if not title.strip():
            raise BadRequestError("Title is required")
        if date_time.tzinfo is None:
            date_time = date_time.replace(tzinfo=timezone.utc)

        event = Event(
            group_id=group.id,
            author_id=author.id,
            title=title.strip(),
            description=description,
            date_time=date_time,
        )
        db.add(event)
        db.commit()

        others = tuple(uid for uid in self.membership.member_ids(db, group.id) if uid != author.id)
        notification = n.EventCreated(event.id, event.title, group.title, author.display_name, others)
        return event, notification

    def attend(self, db: Session, user: User, event_id: int, status: Optional[AttendanceStatus]) -> Event:
        """
        Set the user's RSVP. ``None`` clears it back to unset.

        Only members may respond, and only while the event is in the future.
        """
        event = self.visibility.get_event(db, user.id, event_id)
        if not self.visibility.can_attend(event):
            raise BadRequestError("Event has already started")

        row = db.query(EventParticipant).filter(
            EventParticipant.event_id == event.id,
            EventParticipant.user_id == user.id,
        ).first()
        if status is None:
            if row is not None:
                db.delete(row)
        elif row is None:
            db.add(EventParticipant(event_id=event.id, user_id=user.id, status=status))
        else:
            row.status = status
        db.commit()
        return event

    def attendance(self, db: Session, event_id: int) -> dict[int, AttendanceStatus]:
        rows = db.query(EventParticipant).filter(EventParticipant.event_id == event_id)
        return {row.user_id: row.status for row in rows}

    def participants(self, db: Session, viewer_id: int, event_id: int) -> list[dict]:
        event = self.visibility.get_event(db, viewer_id, event_id)
        rows = (
            db.query(EventParticipant, User)
            .join(User, User.id == EventParticipant.user_id)
            .filter(EventParticipant.event_id == event.id)
            .order_by(User.id)
            .all()
        )
        return [{**user.limited(), "status": row.status.value} for row, user in rows]

    def group_events(self, db: Session, viewer_id: int, group_id: int) -> list[Event]:
        self.membership.get_group(db, group_id)
        if not self.visibility.is_member(db, group_id, viewer_id):
            raise deny(viewer_id, "Only group members can see events")
        return (
            db.query(Event)
            .filter(Event.group_id == group_id)
            .order_by(Event.date_time)
            .all()
        )

    def my_events(self, db: Session, user: User) -> list[Event]:
        """Events in the user's groups, soonest first."""
        group_ids = self.visibility.member_group_ids(db, user.id)
        if not group_ids:
            return []
        return (
            db.query(Event)
            .filter(Event.group_id.in_(group_ids))
            .order_by(Event.date_time)
            .all()
        )
