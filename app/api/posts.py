"""Posts, feeds and comments."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.dependencies import get_db, get_post_service, get_visibility
from app.models.user import User
from app.services.auth.dependencies import get_current_user, viewer_id
from app.services.post_service import PostService
from app.services.visibility import VisibilityResolver


router = APIRouter(tags=["posts"])


class PostCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)
    privacy: str = "public"
    group_id: Optional[int] = None
    allowed_users: list[int] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)


class CommentCreate(BaseModel):
    content: str = ""
    image: Optional[str] = None


# =============================================================================
# Posts
# =============================================================================


@router.post("/post", status_code=201)
def create_post(
    body: PostCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    posts: PostService = Depends(get_post_service),
):
    post = posts.create_post(
        db,
        user,
        title=body.title,
        content=body.content,
        privacy=body.privacy,
        group_id=body.group_id,
        allowed_users=body.allowed_users,
        images=body.images,
    )
    return post.to_dict()


@router.get("/post/{post_id}")
def get_post(
    post_id: int,
    viewer: int = Depends(viewer_id),
    db: Session = Depends(get_db),
    visibility: VisibilityResolver = Depends(get_visibility),
):
    return visibility.get_post(db, viewer, post_id).to_dict()


@router.get("/posts")
def list_posts(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    viewer: int = Depends(viewer_id),
    db: Session = Depends(get_db),
    visibility: VisibilityResolver = Depends(get_visibility),
):
    """Feed of every post the viewer may see outside groups."""
    posts = visibility.visible_posts(db, viewer).offset(offset).limit(limit).all()
    return [post.to_dict() for post in posts]


@router.get("/posts/groups")
def list_group_posts(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    visibility: VisibilityResolver = Depends(get_visibility),
):
    posts = visibility.group_posts(db, user.id).offset(offset).limit(limit).all()
    return [post.to_dict() for post in posts]


@router.get("/posts/following")
def list_following_posts(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    visibility: VisibilityResolver = Depends(get_visibility),
):
    posts = visibility.following_posts(db, user.id).offset(offset).limit(limit).all()
    return [post.to_dict() for post in posts]


# =============================================================================
# Comments
# =============================================================================


@router.post("/post/{post_id}/comment", status_code=201)
def add_comment(
    post_id: int,
    body: CommentCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    posts: PostService = Depends(get_post_service),
):
    comment = posts.add_comment(db, user, post_id, body.content, body.image)
    return comment.to_dict()


@router.get("/post/{post_id}/comments")
def list_comments(
    post_id: int,
    viewer: int = Depends(viewer_id),
    db: Session = Depends(get_db),
    posts: PostService = Depends(get_post_service),
):
    return [comment.to_dict() for comment in posts.comments(db, viewer, post_id)]
