"""
Unit tests for FollowService.
"""
import pytest
from sqlalchemy.orm import Session

from app.errors import BadRequestError, NotFoundError
from app.models import Follower, FollowStatus
from app.services import notifications as n
from app.services.follow_service import FollowService
from tests.factories import create_follow, create_user


@pytest.fixture
def service() -> FollowService:
    return FollowService()


class TestFollow:
    """Tests for starting to follow someone."""

    def test_follow_public_user_accepted(self, db: Session, service: FollowService):
        me = create_user(db)
        target = create_user(db)

        notification = service.follow(db, me, target.id)

        assert service.status(db, me.id, target.id) == FollowStatus.ACCEPTED
        assert isinstance(notification, n.Follow)
        assert notification.target_id == target.id

    def test_follow_private_user_requests(self, db: Session, service: FollowService):
        me = create_user(db)
        target = create_user(db, private=True)

        notification = service.follow(db, me, target.id)

        assert service.status(db, me.id, target.id) == FollowStatus.REQUESTED
        assert isinstance(notification, n.FollowRequest)

    def test_follow_twice_is_noop(self, db: Session, service: FollowService):
        me = create_user(db)
        target = create_user(db)
        service.follow(db, me, target.id)

        assert service.follow(db, me, target.id) is None
        assert db.query(Follower).count() == 1

    def test_cannot_follow_self(self, db: Session, service: FollowService):
        me = create_user(db)

        with pytest.raises(BadRequestError):
            service.follow(db, me, me.id)

    def test_follow_unknown_user(self, db: Session, service: FollowService):
        with pytest.raises(NotFoundError):
            service.follow(db, create_user(db), 9999)


class TestAcceptAndUnfollow:
    """Tests for accepting requests and unfollowing."""

    def test_accept_request(self, db: Session, service: FollowService):
        me = create_user(db, private=True)
        fan = create_user(db)
        create_follow(db, fan, me, status=FollowStatus.REQUESTED)

        notification = service.accept(db, me, fan.id)

        assert service.status(db, fan.id, me.id) == FollowStatus.ACCEPTED
        assert notification.target_id == fan.id

    def test_accept_already_accepted_is_noop(self, db: Session, service: FollowService):
        me = create_user(db)
        fan = create_user(db)
        create_follow(db, fan, me)

        assert service.accept(db, me, fan.id) is None

    def test_accept_without_request(self, db: Session, service: FollowService):
        with pytest.raises(NotFoundError):
            service.accept(db, create_user(db), create_user(db).id)

    def test_unfollow_removes_pending_request(self, db: Session, service: FollowService):
        me = create_user(db)
        target = create_user(db, private=True)
        service.follow(db, me, target.id)

        notification = service.unfollow(db, me, target.id)

        assert service.status(db, me.id, target.id) is None
        assert isinstance(notification, n.Unfollowed)

    def test_unfollow_when_not_following(self, db: Session, service: FollowService):
        assert service.unfollow(db, create_user(db), create_user(db).id) is None


class TestListings:
    def test_followers_and_following_exclude_requests(self, db: Session, service: FollowService):
        me = create_user(db)
        fan = create_user(db)
        pending = create_user(db)
        idol = create_user(db)
        create_follow(db, fan, me)
        create_follow(db, pending, me, status=FollowStatus.REQUESTED)
        create_follow(db, me, idol)

        assert [u.id for u in service.followers(db, me.id)] == [fan.id]
        assert [u.id for u in service.following(db, me.id)] == [idol.id]

    def test_contacts_are_both_directions_once(self, db: Session, service: FollowService):
        me = create_user(db)
        fan = create_user(db)
        idol = create_user(db)
        friend = create_user(db)
        pending = create_user(db)
        create_user(db)
        create_follow(db, fan, me)
        create_follow(db, me, idol)
        create_follow(db, me, friend)
        create_follow(db, friend, me)
        create_follow(db, pending, me, status=FollowStatus.REQUESTED)

        assert [u.id for u in service.contacts(db, me.id)] == sorted([fan.id, idol.id, friend.id])
