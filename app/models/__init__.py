"""
Database models for the social network.

Import all models here so Alembic can detect them for migrations.
"""

from app.database import Base
from app.models.user import User
from app.models.session import Session
from app.models.follower import Follower, FollowStatus
from app.models.group import Group, GroupAccess
from app.models.group_member import GroupMember, MemberStatus, MemberRole
from app.models.post import Post, PostPrivacy, SelectedUser
from app.models.comment import Comment
from app.models.event import Event, EventParticipant, AttendanceStatus
from app.models.message import Message
from app.models.stored_file import StoredFile

__all__ = [
    "Base",
    "User",
    "Session",
    "Follower",
    "FollowStatus",
    "Group",
    "GroupAccess",
    "GroupMember",
    "MemberStatus",
    "MemberRole",
    "Post",
    "PostPrivacy",
    "SelectedUser",
    "Comment",
    "Event",
    "EventParticipant",
    "AttendanceStatus",
    "Message",
    "StoredFile",
]
