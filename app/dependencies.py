"""FastAPI dependencies."""

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Caller, Role
from app.core.redis_client import CacheManager, get_redis_client
from app.core.security import decode_token
from app.database import get_db
from app.services.doctor_service import DoctorService
from app.services.patient_service import PatientService
from app.services.user_service import UserService

# Security
security = HTTPBearer()


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> int:
    """
    Extract and validate user ID from JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        User ID from token

    Raises:
        HTTPException: If token is invalid or expired
    """
    payload = decode_token(credentials.credentials)

    if payload is None:
        raise _credentials_error()

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise _credentials_error()

    try:
        return int(user_id_str)
    except ValueError:
        raise _credentials_error("Invalid user ID format")


async def get_current_user(
    user_id: Annotated[int, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """
    Get current user from database.

    Raises:
        HTTPException: If user not found or inactive
    """
    user = await UserService().get_user_by_id(db, user_id)

    if not user:
        raise _credentials_error("User not found")

    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


def get_cache_manager() -> CacheManager | None:
    """Cache manager backed by the shared Redis client."""
    return CacheManager(get_redis_client())


async def get_current_caller(
    user: Annotated[dict, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Caller:
    """Resolve the current user and their Doctor or Patient profile."""
    role = Role(user["role"])
    profile = None

    if role is Role.DOCTOR:
        profile = await DoctorService().get_doctor_by_user_id(db, user["id"])
    elif role is Role.PATIENT:
        profile = await PatientService().get_patient_by_user_id(db, user["id"])

    return Caller(
        user_id=user["id"],
        role=role,
        email=user["email"],
        profile_id=profile["id"] if profile else None,
    )


def require_roles(*roles: Role) -> Callable[..., Awaitable[Caller]]:
    """Dependency factory admitting only callers with one of ``roles``."""

    async def checker(caller: Annotated[Caller, Depends(get_current_caller)]) -> Caller:
        if caller.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return caller

    return checker


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
CurrentCaller = Annotated[Caller, Depends(get_current_caller)]
AdminCaller = Annotated[Caller, Depends(require_roles(Role.ADMIN))]
StaffCaller = Annotated[Caller, Depends(require_roles(Role.ADMIN, Role.DOCTOR))]
CacheManagerDep = Annotated[CacheManager | None, Depends(get_cache_manager)]
