"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
password/token helpers and the email sender. Services are intentionally
thin: they perform validation, execute domain logic and persist
aggregates via repositories. Every rejected request raises
`BadRequestError`.
"""

import logging
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session
from . import models, repositories, security
from .config import AuthData, settings
from .emails import EmailSender
from .errors import BadRequestError, EMAIL_USERNAME_EXIST
from .schemas import CategoryCreationReq, UserInfoReq, UserLoginReq

logger = logging.getLogger("tisa.auth")


class AuthService:
    """Login, two-step registration and account existence checks."""
    def __init__(self, session: Session, email_sender: Optional[EmailSender] = None, auth_data: Optional[AuthData] = None):
        self.session = session
        self.email_sender = email_sender
        self.auth_data = auth_data or settings.AUTH
        self.user_repo = repositories.UserRepository(session)
        self.pending_repo = repositories.PendingRegistrationRepository(session)

    def authorize(self, login: UserLoginReq) -> str:
        """Verify credentials and return a signed JWT token.

        The email is used for the lookup when present, otherwise the
        username. Unknown accounts and wrong passwords fail identically.
        """
        if not login.username and not login.email:
            raise BadRequestError()
        if login.email:
            user = self.user_repo.get_by_email(login.email)
        else:
            user = self.user_repo.get_by_username(login.username)
        if not user or not security.verify_password(login.password, user.password_hash, user.salt, self.auth_data):
            raise BadRequestError()
        logger.info("token granted user_id=%s username=%s", user.id, user.username)
        return security.create_token(user, self.auth_data)

    def is_email_exist(self, email: str) -> bool:
        return self.user_repo.email_exists(email)

    def is_username_exist(self, username: str) -> bool:
        return self.user_repo.username_exists(username)

    def registrate(self, info: UserInfoReq) -> int:
        """Store a pending registration, email its code and return its id."""
        if self.is_email_exist(info.email) or self.is_username_exist(info.username):
            raise BadRequestError(EMAIL_USERNAME_EXIST)
        code = security.generate_code(settings.VERIFICATION_CODE_LENGTH)
        salt = security.create_salt(self.auth_data.salt_size)
        pending = models.PendingRegistration(
            username=info.username.lower(),
            email=info.email.lower(),
            salt=salt,
            password_hash=security.hash_password(info.password, salt, self.auth_data),
            verification_code=code,
            expire_date=models.utcnow() + settings.PENDING_REGISTRATION_TTL,
        )
        pending = self.pending_repo.create(pending)
        self.email_sender.send_email_code(pending.email, code)
        logger.info("created pending registration id=%s username=%s", pending.id, pending.username)
        return pending.id

    def verify(self, pending_id: int, code: str) -> str:
        """Confirm a pending registration and return a token for the new user."""
        pending = self.pending_repo.get(pending_id)
        if pending is None or pending.is_expired() or pending.verification_code != code:
            raise BadRequestError()
        try:
            user = self.pending_repo.promote(pending)
        except IntegrityError:
            raise BadRequestError(EMAIL_USERNAME_EXIST)
        logger.info("created user id=%s username=%s", user.id, user.username)
        logger.info("token granted user_id=%s username=%s", user.id, user.username)
        return security.create_token(user, self.auth_data)

    def purge_expired(self) -> int:
        """Delete expired pending registrations and return how many went."""
        removed = self.pending_repo.delete_expired(models.utcnow())
        logger.info("purged %s expired pending registrations", removed)
        return removed


class CategoryService:
    """Create, read, update and delete categories, keeping the tree valid."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.CategoryRepository(session)

    def list(self, parent_id: Optional[int] = None) -> List[models.Category]:
        """All categories, children of `parent_id`, or roots when it is 0."""
        if parent_id == 0:
            return self.repo.list(roots_only=True)
        return self.repo.list(parent_id)

    def get(self, category_id: int) -> models.Category:
        category = self.repo.get(category_id)
        if category is None:
            raise BadRequestError()
        return category

    def create(self, req: CategoryCreationReq) -> models.Category:
        self._check_parent(req.parent_category_id)
        category = models.Category(name=req.name, photo_path=req.photo_path, parent_category_id=req.parent_category_id)
        return self.repo.save(category)

    def update(self, category_id: int, req: CategoryCreationReq) -> models.Category:
        category = self.get(category_id)
        self._check_parent(req.parent_category_id, moving=category_id)
        category.name = req.name
        category.photo_path = req.photo_path
        category.parent_category_id = req.parent_category_id
        return self.repo.save(category)

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        if self.repo.has_children(category_id):
            raise BadRequestError("Category has subcategories.")
        self.repo.delete(category)

    def _check_parent(self, parent_id: Optional[int], moving: Optional[int] = None):
        """Reject unknown parents and, for updates, parents inside the moved subtree."""
        if parent_id is None:
            return
        seen = set()
        current = self.repo.get(parent_id)
        if current is None:
            raise BadRequestError("Parent category not found.")
        while current is not None and current.id not in seen:
            if current.id == moving:
                raise BadRequestError("Category cannot be its own ancestor.")
            seen.add(current.id)
            current = self.repo.get(current.parent_category_id) if current.parent_category_id else None
