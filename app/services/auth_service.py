from datetime import datetime, timezone
from typing import Optional, Tuple
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from app.models.user import User, UserRole
from app.models.cart import Cart
from app.core.exceptions import DuplicateResourceError
from app.core.security import (
    verify_and_check_needs_rehash,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    verify_refresh_token,
)
from app.config import settings
from app.schemas.auth import RegisterRequest

logger = logging.getLogger(__name__)


class AuthService:
    """Authentication service for registration, login and token management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def register(self, data: RegisterRequest, role: UserRole = UserRole.CUSTOMER) -> User:
        """
        Create a user together with their cart.

        Raises:
            DuplicateResourceError: email already registered
        """
        if await self.get_user_by_email(data.email):
            raise DuplicateResourceError("User already exists with this email", {"email": data.email})

        user = User(
            email=data.email.lower(),
            password_hash=get_password_hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            role=role.value,
        )
        user.cart = Cart()
        self.db.add(user)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning(f"Registration race on email {data.email}")
            raise DuplicateResourceError("User already exists with this email", {"email": data.email})

        await self.db.refresh(user)
        logger.info(f"Registered user {user.id}")
        return user

    async def authenticate_user(
        self,
        email: str,
        password: str
    ) -> Optional[User]:
        """
        Authenticate a user by email and password.

        Passwords hashed with a deprecated scheme are rehashed on success.

        Returns:
            User object if authentication successful, None otherwise
        """
        user = await self.get_user_by_email(email)

        if user is None:
            return None

        is_valid, needs_rehash = verify_and_check_needs_rehash(password, user.password_hash)

        if not is_valid:
            return None

        if not user.is_active:
            return None

        if needs_rehash:
            user.password_hash = get_password_hash(password)
            await self.db.commit()

        return user

    async def create_tokens(
        self,
        user: User
    ) -> Tuple[str, str, int]:
        """
        Create access and refresh tokens for a user.

        Returns:
            Tuple of (access_token, refresh_token, expires_in_seconds)
        """
        additional_claims = {
            "email": user.email,
            "role": user.role,
        }

        access_token = create_access_token(
            subject=user.id,
            additional_claims=additional_claims
        )

        refresh_token = create_refresh_token(subject=user.id)

        expires_in = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

        user.last_login_at = datetime.now(timezone.utc)
        await self.db.commit()

        return access_token, refresh_token, expires_in

    async def refresh_tokens(
        self,
        refresh_token: str
    ) -> Optional[Tuple[str, str, int]]:
        """
        Issue a new token pair from a valid refresh token.

        Returns None if the token is invalid or the user is gone or inactive.
        """
        user_id = verify_refresh_token(refresh_token)

        if user_id is None:
            return None

        try:
            user_uuid = uuid.UUID(user_id)
        except ValueError:
            return None

        user = await self.db.get(User, user_uuid)

        if user is None or not user.is_active:
            return None

        return await self.create_tokens(user)
