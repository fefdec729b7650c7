from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from roomshare.api.deps import get_current_user
from roomshare.chat.envelope import isoformat_utc
from roomshare.core.exceptions import parse_id
from roomshare.core.schemas import CamelModel
from roomshare.db.database import get_db
from roomshare.db.models import Post, User

router = APIRouter()


class PostCreateRequest(CamelModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    price: float = Field(ge=0)
    location: str = Field(min_length=1)
    type: str
    occupancy: str
    furnished: bool = False
    available_from: datetime
    amenities: List[str] = []
    images: List[str] = []


class PostResponse(CamelModel):
    id: int
    title: str
    description: str
    price: float
    location: str
    type: str
    occupancy: str
    furnished: bool
    available_from: str
    amenities: List[str]
    images: List[str]
    posted_by: int
    created_at: Optional[str] = None


def post_to_response(post: Post) -> dict:
    return PostResponse(
        id=post.id,
        title=post.title,
        description=post.description,
        price=post.price,
        location=post.location,
        type=post.type,
        occupancy=post.occupancy,
        furnished=bool(post.furnished),
        available_from=isoformat_utc(post.available_from),
        amenities=post.amenities or [],
        images=post.images or [],
        posted_by=post.posted_by_id,
        created_at=isoformat_utc(post.created_at) if post.created_at else None,
    ).model_dump(by_alias=True)


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_post(
    request: PostCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = Post(
        title=request.title,
        description=request.description,
        price=request.price,
        location=request.location,
        type=request.type,
        occupancy=request.occupancy,
        furnished=request.furnished,
        available_from=request.available_from,
        amenities=request.amenities,
        images=request.images,
        posted_by_id=current_user.id,
    )
    db.add(post)
    await db.commit()
    await db.refresh(post)
    return {"success": True, "data": post_to_response(post)}


@router.get("/user/{user_id}")
async def list_user_posts(user_id: str, db: AsyncSession = Depends(get_db)):
    """Listings posted by a user; their ids tell "my room" chats from the rest."""
    uid = parse_id(user_id, "userId")
    r = await db.execute(select(Post).where(Post.posted_by_id == uid).order_by(Post.created_at.desc(), Post.id.desc()))
    return {"success": True, "rooms": [post_to_response(p) for p in r.scalars().all()]}


@router.get("/{post_id}")
async def get_post(post_id: str, db: AsyncSession = Depends(get_db)):
    r = await db.execute(select(Post).where(Post.id == parse_id(post_id, "postId")))
    post = r.scalar_one_or_none()
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return {"success": True, "data": post_to_response(post)}
