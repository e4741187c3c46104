"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
pending registrations, categories). Repositories return SQLModel
objects and perform commits/refreshes where appropriate.
"""

from datetime import datetime
from typing import List, Optional
from sqlmodel import Session, select
from sqlalchemy import delete
from . import models


class UserRepository:
    """Lookups and persistence for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username (case-insensitive) or `None`."""
        stmt = select(models.User).where(models.User.username == username.lower())
        return self.session.exec(stmt).first()

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email (case-insensitive) or `None`."""
        stmt = select(models.User).where(models.User.email == email.lower())
        return self.session.exec(stmt).first()

    def username_exists(self, username: str) -> bool:
        stmt = select(models.User.id).where(models.User.username == username.lower())
        return self.session.exec(stmt).first() is not None

    def email_exists(self, email: str) -> bool:
        stmt = select(models.User.id).where(models.User.email == email.lower())
        return self.session.exec(stmt).first() is not None


class PendingRegistrationRepository:
    """Persistence for registrations awaiting email verification."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, pending: models.PendingRegistration) -> models.PendingRegistration:
        self.session.add(pending)
        self.session.commit()
        self.session.refresh(pending)
        return pending

    def get(self, pending_id: int) -> Optional[models.PendingRegistration]:
        return self.session.get(models.PendingRegistration, pending_id)

    def promote(self, pending: models.PendingRegistration) -> models.User:
        """Turn `pending` into a `User` and drop the pending row in one commit.

        Raises `sqlalchemy.exc.IntegrityError` (after rolling back) when the
        username or email was taken in the meantime.
        """
        user = models.User.from_pending(pending)
        self.session.add(user)
        self.session.delete(pending)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(user)
        return user

    def delete_expired(self, now: datetime) -> int:
        """Delete rows whose `expire_date` is before `now`; return the count."""
        stmt = delete(models.PendingRegistration).where(models.PendingRegistration.expire_date < models.as_utc(now))
        result = self.session.exec(stmt)
        self.session.commit()
        return result.rowcount


class CategoryRepository:
    """CRUD operations for `Category` records."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, category_id: int) -> Optional[models.Category]:
        return self.session.get(models.Category, category_id)

    def list(self, parent_id: Optional[int] = None, roots_only: bool = False) -> List[models.Category]:
        """Return all categories, only direct children of `parent_id`, or only roots."""
        stmt = select(models.Category)
        if roots_only:
            stmt = stmt.where(models.Category.parent_category_id.is_(None))
        elif parent_id is not None:
            stmt = stmt.where(models.Category.parent_category_id == parent_id)
        return self.session.exec(stmt.order_by(models.Category.id)).all()

    def has_children(self, category_id: int) -> bool:
        stmt = select(models.Category.id).where(models.Category.parent_category_id == category_id)
        return self.session.exec(stmt).first() is not None

    def save(self, category: models.Category) -> models.Category:
        """Insert or update `category` and return the refreshed instance."""
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def delete(self, category: models.Category) -> None:
        self.session.delete(category)
        self.session.commit()
