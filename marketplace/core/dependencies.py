from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jwt.exceptions import InvalidTokenError
from sqlmodel import Session
from pydantic import ValidationError
from loguru import logger

from marketplace.db.core import get_session
from marketplace.db.schema import User, UserRole, UserStatus
from marketplace.services.user import UserService
from marketplace.services.profile import ProfileService
from marketplace.services.category import CategoryService
from marketplace.services.admin import AdminService
from marketplace.services.product import ProductService
from marketplace.services.cart import CartService
from marketplace.services.order import OrderService
from marketplace.services.rfq import RFQService
from marketplace.services.quote import QuoteService
from marketplace.services.certification import CertificationService
from marketplace.services.notification import NotificationService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def get_user_service(session: Session = Depends(get_session)) -> UserService:
    """Creates a UserService instance using the active DB session."""
    return UserService(session)


def get_profile_service(session: Session = Depends(get_session)) -> ProfileService:
    return ProfileService(session)


def get_category_service(session: Session = Depends(get_session)) -> CategoryService:
    return CategoryService(session)


def get_admin_service(session: Session = Depends(get_session)) -> AdminService:
    return AdminService(session)


def get_product_service(session: Session = Depends(get_session)) -> ProductService:
    return ProductService(session)


def get_cart_service(session: Session = Depends(get_session)) -> CartService:
    return CartService(session)


def get_order_service(session: Session = Depends(get_session)) -> OrderService:
    return OrderService(session)


def get_rfq_service(session: Session = Depends(get_session)) -> RFQService:
    return RFQService(session)


def get_quote_service(session: Session = Depends(get_session)) -> QuoteService:
    return QuoteService(session)


def get_certification_service(session: Session = Depends(get_session)) -> CertificationService:
    return CertificationService(session)


def get_notification_service(session: Session = Depends(get_session)) -> NotificationService:
    return NotificationService(session)


def get_current_user(
    token: str = Depends(oauth2_scheme),
    service: UserService = Depends(get_user_service)
) -> User:
    """
    Validates the JWT token and retrieves the user.
    This is the gatekeeper for protected routes.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        token_data = service.verify_access_token(token)

        if not token_data:
            raise credentials_exception

    except (InvalidTokenError, ValidationError):
        raise credentials_exception

    user = service.get_user_by_id(token_data.user_id)

    if user is None:
        raise credentials_exception

    if user.status != UserStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is not active",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def require_roles(*roles: UserRole):
    """
    Dependency factory: route is reachable only by the listed roles.
    Usage: current_user: User = Depends(require_roles(UserRole.SELLER))
    """
    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            logger.warning(
                f"Role {current_user.role.value} refused for user {current_user.id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Insufficient permissions"
            )
        return current_user

    return checker


require_buyer = require_roles(UserRole.BUYER)
require_seller = require_roles(UserRole.SELLER)
require_admin = require_roles(UserRole.ADMIN)
