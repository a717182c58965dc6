"""Group events and RSVPs."""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.dependencies import get_db, get_dispatcher, get_event_service, get_visibility
from app.models import AttendanceStatus, User
from app.services.auth.dependencies import get_current_user, viewer_id
from app.services.event_service import EventService
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.visibility import VisibilityResolver


router = APIRouter(tags=["events"])


class EventCreate(BaseModel):
    group_id: int
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    date_time: datetime


class AttendRequest(BaseModel):
    status: Literal["going", "not_going", "unset"]


def _event_dict(event, attendance: dict, viewer: int) -> dict:
    going = sum(1 for status in attendance.values() if status == AttendanceStatus.GOING)
    mine = attendance.get(viewer)
    return {
        **event.to_dict(),
        "going": going,
        "not_going": len(attendance) - going,
        "my_status": mine.value if mine else "unset",
    }


@router.post("/event", status_code=201)
def create_event(
    body: EventCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    events: EventService = Depends(get_event_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Create an event and notify the other group members."""
    event, notification = events.create_event(
        db, user, body.group_id, body.title, body.description, body.date_time
    )
    dispatcher.schedule(background_tasks, notification)
    return event.to_dict()


@router.get("/events/my")
def my_events(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    events: EventService = Depends(get_event_service),
):
    return [
        _event_dict(event, events.attendance(db, event.id), user.id)
        for event in events.my_events(db, user)
    ]


@router.get("/event/{event_id}")
def get_event(
    event_id: int,
    viewer: int = Depends(viewer_id),
    db: Session = Depends(get_db),
    events: EventService = Depends(get_event_service),
    visibility: VisibilityResolver = Depends(get_visibility),
):
    event = visibility.get_event(db, viewer, event_id)
    return _event_dict(event, events.attendance(db, event.id), viewer)


@router.post("/event/{event_id}/attend")
def attend_event(
    event_id: int,
    body: AttendRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    events: EventService = Depends(get_event_service),
):
    """Set going / not going, or clear the response with ``unset``."""
    status = None if body.status == "unset" else AttendanceStatus(body.status)
    event = events.attend(db, user, event_id, status)
    return _event_dict(event, events.attendance(db, event.id), user.id)


@router.get("/event/{event_id}/members")
def event_members(
    event_id: int,
    viewer: int = Depends(viewer_id),
    db: Session = Depends(get_db),
    events: EventService = Depends(get_event_service),
):
    return events.participants(db, viewer, event_id)
