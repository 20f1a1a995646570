"""
SQLAlchemy ORM models.

Tables:
  users      — user profiles + follower/following counters
  pins       — pin metadata (image bytes live elsewhere; we keep the URL)
  boards     — user-owned named collections of pins
  board_pins — board × pin membership
  pin_tags   — one row per (pin, tag), the queryable copy of pins.tags

Like / save / follow memberships are NOT stored here: they live in the
social toggle store (see pinboard.social). The counters on users and pins
are adjusted by the toggle endpoints.
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    case,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pinboard.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(50))
    bio: Mapped[str] = mapped_column(String(160), default="", nullable=False)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500))
    website: Mapped[Optional[str]] = mapped_column(String(500))
    follower_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    following_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    pins = relationship("Pin", back_populates="author", lazy="raise")


class Pin(Base):
    __tablename__ = "pins"

    pin_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    image_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    image_width: Mapped[int] = mapped_column(Integer, default=400, nullable=False)
    image_height: Mapped[int] = mapped_column(Integer, default=600, nullable=False)
    link: Mapped[Optional[str]] = mapped_column(String(1000))
    # list[str], normalised on write (trimmed, de-duplicated)
    tags: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    like_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    save_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    author = relationship("User", back_populates="pins", lazy="joined")

    __table_args__ = (
        Index("idx_pins_user", "user_id"),
        Index("idx_pins_created", "created_at"),
    )


class PinTag(Base):
    __tablename__ = "pin_tags"

    pin_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("pins.pin_id"), primary_key=True
    )
    tag: Mapped[str] = mapped_column(String(50), primary_key=True)

    __table_args__ = (Index("idx_pin_tags_tag", "tag"),)


class Board(Base):
    __tablename__ = "boards"

    board_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    is_private: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    cover_image: Mapped[Optional[str]] = mapped_column(String(1000))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_boards_user", "user_id"),)


class BoardPin(Base):
    __tablename__ = "board_pins"

    board_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("boards.board_id"), primary_key=True
    )
    pin_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("pins.pin_id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )


def counter_step(column, delta: int):
    """SQL expression for column ± 1 that never goes below zero."""
    if delta > 0:
        return column + 1
    return case((column > 0, column - 1), else_=0)
