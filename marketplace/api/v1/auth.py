from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from marketplace.core.dependencies import get_user_service, get_current_user
from marketplace.services.user import UserService
from marketplace.db.schema import User, UserRole
from marketplace.models.auth import TokenAccess, TokenRefresh
from marketplace.models.common import ApiResponse, MessageRead
from marketplace.models.user import (
    UserSignin,
    UserRead,
    UserCreate,
    PasswordUpdate,
    RegistrationRead,
    LoginRead
)


router = APIRouter()


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[RegistrationRead],
    summary="Register a new user",
    description="Creates a Buyer or Seller account, optionally with its profile."
)
def register(
    user_in: UserCreate,
    service: UserService = Depends(get_user_service)
):
    """
    1. Validates input (Pydantic).
    2. Calls Service to create User + Profile (Atomic).
    3. Returns public user info and a token pair.
    """
    new_user = service.create_user(user_in)
    tokens = service.generate_tokens(new_user)

    message = ("Registration successful. Your seller account is pending approval."
               if new_user.role == UserRole.SELLER
               else "Registration successful.")

    return ApiResponse(data=RegistrationRead(
        user=UserRead.model_validate(new_user),
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        message=message
    ))


@router.post(
    "/login",
    response_model=ApiResponse[LoginRead],
    status_code=status.HTTP_200_OK,
    summary="Signin to get tokens",
    description="Returns an Access Token (short-lived) and Refresh Token (long-lived)."
)
def login(
    signin_data: UserSignin,
    service: UserService = Depends(get_user_service)
):
    """
    1. Verifies password.
    2. Checks the account status.
    3. Issues JWTs.
    """
    user = service.authenticate_user(signin_data.email, signin_data.password)

    if not user:
        # Security: Return generic error to prevent user enumeration
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    service.ensure_can_sign_in(user)

    tokens = service.generate_tokens(user)

    logger.info(f"User logged in: {user.id}")

    return ApiResponse(data=LoginRead(
        user=UserRead.model_validate(user),
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token
    ))


@router.post(
    "/refresh",
    response_model=ApiResponse[TokenAccess],
    status_code=status.HTTP_200_OK,
    summary="Refresh Session",
    description="Exchanges a valid Refresh Token for a new Access Token."
)
def refresh_token(
    refresh_data: TokenRefresh,
    service: UserService = Depends(get_user_service)
):
    """
    1. Validates the signature of the refresh token.
    2. Ensures the token is actually a 'refresh' type (not an access token).
    3. Verifies the user still exists and is active.
    """
    return ApiResponse(data=TokenAccess(
        access_token=service.refresh_session(refresh_data.refresh_token)))


@router.get(
    "/me",
    response_model=ApiResponse[UserRead],
    status_code=status.HTTP_200_OK,
    summary="Get current user",
    description="Returns the account and profile of the currently authenticated user."
)
def get_me(
    current_user: User = Depends(get_current_user)
):
    """
    Protected route.
    If the token is invalid, this function is never actually called;
    FastAPI raises 401 before we get here.
    """
    return ApiResponse(data=UserRead.model_validate(current_user))


@router.put(
    "/password",
    response_model=ApiResponse[MessageRead],
    status_code=status.HTTP_200_OK,
    summary="Change password"
)
def change_password(
    data: PasswordUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    service.change_password(current_user, data)
    return ApiResponse(data=MessageRead(message="Password updated successfully"))
