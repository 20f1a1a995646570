"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

MAX_TAGS = 20
MAX_TAG_LENGTH = 50


# ──────────────────────────── Users ───────────────────────────────────────

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=30, pattern=r"^[a-zA-Z0-9_]+$")
    display_name: Optional[str] = Field(None, max_length=50)
    bio: str = Field("", max_length=160)
    avatar_url: Optional[str] = None
    website: Optional[str] = None


class UserUpdate(BaseModel):
    """Partial profile edit; omitted fields are left as they are."""

    display_name: Optional[str] = Field(None, min_length=2, max_length=50)
    bio: Optional[str] = Field(None, max_length=160)
    avatar_url: Optional[str] = None
    website: Optional[str] = None

    @field_validator("avatar_url", "website")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class UserResponse(BaseModel):
    user_id: str
    username: str
    display_name: Optional[str]
    bio: str = ""
    avatar_url: Optional[str] = None
    website: Optional[str] = None
    follower_count: int = 0
    following_count: int = 0
    created_at: datetime

    class Config:
        from_attributes = True


class FollowResponse(BaseModel):
    user_id: str
    is_following: bool
    follower_count: int


# ──────────────────────────── Pins ────────────────────────────────────────

class PinCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field("", max_length=500)
    image_url: str = Field(..., min_length=1)
    image_width: int = Field(400, gt=0)
    image_height: int = Field(600, gt=0)
    link: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    board_id: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v

    @field_validator("tags")
    @classmethod
    def _normalise_tags(cls, v: list[str]) -> list[str]:
        # Trim, drop blanks, keep first occurrence
        seen: list[str] = []
        for tag in v:
            tag = tag.strip()
            if len(tag) > MAX_TAG_LENGTH:
                raise ValueError(f"tags must be at most {MAX_TAG_LENGTH} characters")
            if tag and tag not in seen:
                seen.append(tag)
        if len(seen) > MAX_TAGS:
            raise ValueError(f"at most {MAX_TAGS} tags allowed")
        return seen


class PinResponse(BaseModel):
    pin_id: str
    user_id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    title: str
    description: str
    image_url: str
    image_width: int
    image_height: int
    link: Optional[str]
    tags: list[str]
    like_count: int
    save_count: int
    created_at: datetime
    # Present only on related-pin listings
    relevance_score: Optional[float] = None


class PinDetailResponse(PinResponse):
    is_liked: bool = False
    is_saved: bool = False
    related: list[PinResponse] = Field(default_factory=list)


class LikeToggleResponse(BaseModel):
    pin_id: str
    is_liked: bool
    likes_count: int


class SaveToggleResponse(BaseModel):
    pin_id: str
    is_saved: bool
    saves_count: int


# ──────────────────────────── Boards ──────────────────────────────────────

class BoardCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str = Field("", max_length=200)
    is_private: bool = False
    cover_image: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class BoardResponse(BaseModel):
    board_id: str
    user_id: str
    name: str
    description: str
    is_private: bool
    cover_image: Optional[str]
    pin_count: int = 0
    created_at: datetime


class BoardDetailResponse(BoardResponse):
    pins: list[PinResponse] = Field(default_factory=list)


class BoardPinAdd(BaseModel):
    pin_id: str


# ──────────────────────────── Profiles / Search ───────────────────────────

class ProfileResponse(UserResponse):
    pins: list[PinResponse] = Field(default_factory=list)
    boards: list[BoardResponse] = Field(default_factory=list)


class SearchResponse(BaseModel):
    pins: list[PinResponse] = Field(default_factory=list)
    users: list[UserResponse] = Field(default_factory=list)
    total_pins: int = 0
    total_users: int = 0
