"""Seed an admin account.

Usage:
    python -m scripts.create_admin admin@clinic.com "Clinic Admin" <password>
"""

import argparse
import asyncio

import structlog

from app.core.permissions import Role
from app.core.security import get_password_hash
from app.database import AsyncSessionLocal, engine
from app.middleware.logging import configure_logging
from app.services.user_service import UserService

logger = structlog.get_logger()


async def create_admin(email: str, name: str, password: str) -> None:
    """Create an admin user unless the email is already taken."""
    user_service = UserService()

    try:
        async with AsyncSessionLocal() as db:
            if await user_service.get_user_by_email(db, email):
                logger.warning("admin_exists", email=email)
                return

            user = await user_service.create_user(
                db,
                email=email,
                password_hash=get_password_hash(password),
                role=Role.ADMIN,
                name=name,
            )
            await db.commit()

        logger.info("admin_created", user_id=user["id"])
    finally:
        await engine.dispose()



def main() -> None:
    parser = argparse.ArgumentParser(description="Create an admin account")
    parser.add_argument("email")
    parser.add_argument("name")
    parser.add_argument("password")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(create_admin(args.email, args.name, args.password))


if __name__ == "__main__":
    main()
