"""Authentication service: registration, password login and JWT issuance."""

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    ConflictException,
    ForbiddenException,
    UnauthorizedException,
    ValidationException,
)
from app.core.permissions import Role
from app.core.redis_client import CacheManager
from app.core.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from app.schemas.auth import RegisterRequest, Token
from app.services.doctor_service import DoctorService
from app.services.patient_service import PatientService
from app.services.user_service import UserService

logger = structlog.get_logger()

SELF_REGISTRATION_ROLES = frozenset({Role.DOCTOR, Role.PATIENT})


class AuthService:
    """Authentication service for account and token operations."""

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize auth service with optional cache manager."""
        self.cache = cache_manager
        self.user_service = UserService()

    async def register(self, db: AsyncSession, data: RegisterRequest) -> dict:
        """
        Register an account and create its Doctor or Patient profile.

        Args:
            db: Database session
            data: Registration form

        Returns:
            Created user

        Raises:
            ValidationException: If passwords differ or the role is not self-service
            ConflictException: If the email is already registered
        """
        if data.password != data.confirm_password:
            raise ValidationException("Passwords do not match.")

        if data.role not in SELF_REGISTRATION_ROLES:
            raise ValidationException("Only doctor and patient accounts can self-register.")

        if await self.user_service.get_user_by_email(db, data.email):
            raise ConflictException("An account with this email already exists.")

        profile = data.model_dump(
            include={"date_of_birth", "contact_number", "gender", "blood_group", "address"}
        )

        try:
            user = await self.user_service.create_user(
                db,
                email=data.email,
                password_hash=get_password_hash(data.password),
                role=data.role,
                name=data.name,
                **profile,
            )
            if data.role is Role.DOCTOR:
                await DoctorService().create_default_profile(db, user)
            else:
                await PatientService().create_default_profile(db, user)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictException("An account with this email already exists.") from e

        if data.role is Role.DOCTOR:
            DoctorService(self.cache).invalidate_cache()
        logger.info("user_registered", user_id=user["id"], role=data.role.value)
        return user

    async def authenticate(self, db: AsyncSession, email: str, password: str) -> dict:
        """
        Check credentials and return the user.

        Raises:
            UnauthorizedException: If email or password is wrong
            ForbiddenException: If the account is deactivated
        """
        user = await self.user_service.get_user_by_email(db, email)
        if not user or not verify_password(password, user["password_hash"]):
            logger.info("login_failed", email_domain=email.rsplit("@", 1)[-1])
            raise UnauthorizedException("Invalid email or password.")

        if not user["is_active"]:
            raise ForbiddenException("Your account has been deactivated. Please contact support.")

        logger.info("login_succeeded", user_id=user["id"], role=user["role"])
        return user

    async def login(self, db: AsyncSession, email: str, password: str) -> tuple[dict, Token]:
        """Authenticate and issue a token pair."""
        user = await self.authenticate(db, email, password)
        return user, self.create_tokens(user)

    def create_tokens(self, user: dict) -> Token:
        """
        Create access and refresh tokens for a user.

        Args:
            user: User row

        Returns:
            Token pair (access and refresh)
        """
        claims = {"sub": str(user["id"]), "role": user["role"], "email": user["email"]}
        return Token(
            access_token=create_access_token(claims),
            refresh_token=create_refresh_token(claims),
            token_type="bearer",
        )

    async def refresh_access_token(self, db: AsyncSession, refresh_token: str) -> Token:
        """
        Create a new token pair from a refresh token.

        Raises:
            UnauthorizedException: If the refresh token is invalid, revoked or
                belongs to an unknown or inactive user
        """
        payload = decode_token(refresh_token, REFRESH_TOKEN_TYPE)
        if payload is None or payload.get("sub") is None:
            raise UnauthorizedException("Invalid refresh token")

        if self.cache and self.cache.exists(f"blacklist:{refresh_token}"):
            raise UnauthorizedException("Token has been revoked")

        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError) as e:
            raise UnauthorizedException("Invalid refresh token") from e

        user = await self.user_service.get_user_by_id(db, user_id)
        if not user or not user["is_active"]:
            raise UnauthorizedException("Invalid refresh token")

        return self.create_tokens(user)

    def revoke_token(self, token: str) -> None:
        """Blacklist a refresh token until it would have expired anyway."""
        if self.cache:
            self.cache.set(
                f"blacklist:{token}", "1", ttl=settings.refresh_token_expire_days * 86400
            )
