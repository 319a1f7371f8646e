"""Authentication endpoints."""

from fastapi import APIRouter, status

from app.dependencies import CacheManagerDep, CurrentCaller, CurrentUser, DatabaseSession
from app.schemas.auth import LoginRequest, LoginResponse, RegisterRequest, Token, TokenRefresh
from app.schemas.users import CurrentUserResponse, UserResponse
from app.services.auth_service import AuthService

router = APIRouter()


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a doctor or patient account",
)
async def register(
    data: RegisterRequest,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> UserResponse:
    """
    Create an account together with its Doctor or Patient profile.

    Admin accounts cannot be self-registered.
    """
    user = await AuthService(cache_manager).register(db, data)
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Email and password login",
)
async def login(
    data: LoginRequest,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> LoginResponse:
    """
    Verify credentials and issue JWT tokens.

    Args:
        data: Email and password
        db: Database session
        cache_manager: Cache for token revocation

    Returns:
        Access token, refresh token and user information
    """
    user, tokens = await AuthService(cache_manager).login(db, data.email, data.password)

    return LoginResponse(
        **tokens.model_dump(),
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/refresh",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    summary="Refresh access token",
)
async def refresh_token(
    request: TokenRefresh,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> Token:
    """Exchange a valid refresh token for a new token pair."""
    return await AuthService(cache_manager).refresh_access_token(db, request.refresh_token)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Logout and revoke tokens",
)
async def logout(
    request: TokenRefresh,
    current_user: CurrentUser,
    cache_manager: CacheManagerDep,
) -> None:
    """Revoke the refresh token so it can no longer be exchanged."""
    AuthService(cache_manager).revoke_token(request.refresh_token)


@router.get(
    "/me",
    response_model=CurrentUserResponse,
    status_code=status.HTTP_200_OK,
    summary="Get current user",
)
async def get_me(current_user: CurrentUser, caller: CurrentCaller) -> CurrentUserResponse:
    """Authenticated user with the id of their Doctor or Patient profile."""
    return CurrentUserResponse(**current_user, profile_id=caller.profile_id)
