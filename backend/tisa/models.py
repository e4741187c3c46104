"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Usernames and emails are always stored lowercased so that uniqueness
checks are case-insensitive.
"""

from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive values; SQLite drivers may hand them back stripped."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class User(SQLModel, table=True):
    """A verified user.

    Fields:
    - `username` / `email`: unique, lowercased
    - `password_hash`: PBKDF2 hash of the password salted with `salt`
    - `salt`: base64 encoded random salt
    """
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    salt: str
    created_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_pending(cls, pending: "PendingRegistration") -> "User":
        return cls(
            username=pending.username,
            email=pending.email,
            password_hash=pending.password_hash,
            salt=pending.salt,
        )


class PendingRegistration(SQLModel, table=True):
    """Registration data awaiting confirmation of the emailed code."""
    __tablename__ = "pending_registrations"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True)
    email: str = Field(index=True)
    password_hash: str
    salt: str
    verification_code: str
    expire_date: datetime = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return as_utc(self.expire_date) < as_utc(now or utcnow())


class Category(SQLModel, table=True):
    """A catalog category; `parent_category_id` forms a tree."""
    __tablename__ = "categories"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    photo_path: str
    parent_category_id: Optional[int] = Field(default=None, foreign_key="categories.id", index=True)
