from typing import Optional
import uuid
from datetime import datetime, timedelta

import jwt
from loguru import logger
from sqlmodel import Session, select
from fastapi import HTTPException, status

from marketplace.core.config import settings
from marketplace.core.errors import DuplicateError, InvalidStateError
from marketplace.db.schema import (
    User, UserRole, UserStatus, BuyerProfile, SellerProfile
)
from marketplace.models.auth import Token, TokenData
from marketplace.models.user import UserCreate, PasswordUpdate
from marketplace.services.category import CategoryService
from .password import get_password_hash, verify_password


class UserService:
    ALGORITHM = "HS256"

    def __init__(self, session: Session):
        self.session = session

    def _create_jwt(self, subject: str, expires_delta: timedelta, type: str) -> str:
        """Helper to sign JWTs with specific types."""
        to_encode = {
            "sub": str(subject),
            "exp": datetime.utcnow() + expires_delta,
            "type": type
        }
        return jwt.encode(to_encode, settings.secret_key, algorithm=self.ALGORITHM)

    def _decode_jwt(self, token: str, expected_type: str) -> Optional[TokenData]:
        try:
            payload = jwt.decode(token, settings.secret_key,
                                 algorithms=[self.ALGORITHM])
            user_id = payload.get("sub")
            token_type = payload.get("type")

            if not user_id or token_type != expected_type:
                return None

            return TokenData(user_id=uuid.UUID(user_id))
        except (jwt.PyJWTError, ValueError):
            return None

    def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        statement = select(User).where(User.id == user_id)
        return self.session.exec(statement).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        statement = select(User).where(User.email == email)
        return self.session.exec(statement).first()

    def create_user(self, user_in: UserCreate) -> User:
        """
        Registers an account and, when supplied, its profile in one transaction.
        Buyers start ACTIVE; Sellers start PENDING until an admin approves them.
        """
        if self.get_user_by_email(user_in.email):
            raise DuplicateError("User already exists with this email")

        categories = []
        if user_in.seller_profile:
            categories = CategoryService(self.session).resolve_categories(
                user_in.seller_profile.categories)

        try:
            new_user = User(
                email=user_in.email,
                hashed_password=get_password_hash(user_in.password),
                role=user_in.role,
                status=(UserStatus.PENDING if user_in.role == UserRole.SELLER
                        else UserStatus.ACTIVE)
            )
            self.session.add(new_user)
            self.session.flush()

            if user_in.buyer_profile:
                self.session.add(BuyerProfile(
                    user_id=new_user.id,
                    **user_in.buyer_profile.model_dump()
                ))

            if user_in.seller_profile:
                self.session.add(SellerProfile(
                    user_id=new_user.id,
                    categories=categories,
                    **user_in.seller_profile.model_dump(exclude={"categories"})
                ))

            self.session.commit()
            self.session.refresh(new_user)

            logger.info(
                f"Registration successful for {new_user.email} ({new_user.role.value})")
            return new_user

        except Exception as e:
            self.session.rollback()
            logger.error(f"Registration failed: {str(e)}")
            raise e

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """Verify email and password hash."""
        user = self.get_user_by_email(email)
        if not user:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    def ensure_can_sign_in(self, user: User):
        """Suspended, rejected and not-yet-approved accounts are turned away."""
        messages = {
            UserStatus.SUSPENDED: "Your account has been suspended",
            UserStatus.REJECTED: "Your account application was rejected",
            UserStatus.PENDING: "Your account is pending approval",
        }
        if user.status in messages:
            logger.warning(
                f"Signin refused for {user.id}: status {user.status.value}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=messages[user.status]
            )

    def generate_access_token(self, user: User) -> str:
        return self._create_jwt(
            subject=user.id,
            expires_delta=timedelta(
                minutes=settings.access_token_expire_minutes),
            type="access"
        )

    def generate_refresh_token(self, user: User) -> str:
        return self._create_jwt(
            subject=user.id,
            expires_delta=timedelta(
                minutes=settings.refresh_token_expire_minutes),
            type="refresh"
        )

    def generate_tokens(self, user: User) -> Token:
        return Token(
            access_token=self.generate_access_token(user),
            refresh_token=self.generate_refresh_token(user),
            token_type="bearer"
        )

    def verify_access_token(self, token: str) -> Optional[TokenData]:
        return self._decode_jwt(token, "access")

    def verify_refresh_token(self, token: str) -> Optional[TokenData]:
        return self._decode_jwt(token, "refresh")

    def validate_user(self, user_id: uuid.UUID) -> Optional[User]:
        """Retrieves user and checks the account is ACTIVE."""
        user = self.get_user_by_id(user_id)
        if not user or user.status != UserStatus.ACTIVE:
            return None
        return user

    def refresh_session(self, refresh_token: str) -> str:
        """
        Exchange a valid refresh token for a new access token.
        Strictly validates the user state before issuing.
        """
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

        token_data = self.verify_refresh_token(refresh_token)
        if not token_data:
            raise credentials_exception

        user = self.validate_user(token_data.user_id)
        if not user:
            raise credentials_exception

        return self.generate_access_token(user)

    def change_password(self, user: User, data: PasswordUpdate):
        if not verify_password(data.current_password, user.hashed_password):
            raise InvalidStateError("Current password is incorrect")

        user.hashed_password = get_password_hash(data.new_password)
        self.session.add(user)
        self.session.commit()
        logger.info(f"Password updated for user {user.id}")
