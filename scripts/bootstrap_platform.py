"""
Standalone script that prepares a fresh database.

It creates every table from the ORM metadata and, if no platform operator
exists yet, creates the first one. Only platform operators can create
colleges, so a new deployment needs this once.

Usage:
    python scripts/bootstrap_platform.py admin@example.com 'S3cret pass' Ada Lovelace
"""
import argparse
import asyncio

from sqlalchemy import select

from campus_link_backend.common.logger import log
from campus_link_backend.common.security_utils import HashedPassword, normalize_email
from campus_link_backend.database import engine as db_engine
from campus_link_backend.database.db_enums import UserRole, UserStatus
from campus_link_backend.database.models import Base, Users


async def bootstrap(email: str, password: str, first_name: str, last_name: str) -> None:
    engine = db_engine.create_db_engine_and_session_factory()
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        log.info("Schema is up to date.")

        async with db_engine.AsyncSessionLocal() as session:
            existing = await session.execute(
                select(Users.id).filter(Users.role == UserRole.SUPER_ADMIN.value).limit(1)
            )
            if existing.scalars().first():
                log.info("A platform operator already exists. Nothing to do.")
                return

            session.add(Users(
                tenant_id=None,
                email=normalize_email(email),
                password=HashedPassword.get_hash(password),
                role=UserRole.SUPER_ADMIN.value,
                status=UserStatus.ACTIVE.value,
                first_name=first_name,
                last_name=last_name
            ))
            await session.commit()
            log.info(f"Created platform operator {normalize_email(email)}.")
    finally:
        await db_engine.dispose_db_engine()


def main():
    parser = argparse.ArgumentParser(description="Create the schema and the first platform operator.")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("first_name")
    parser.add_argument("last_name")
    args = parser.parse_args()
    asyncio.run(bootstrap(args.email, args.password, args.first_name, args.last_name))


if __name__ == "__main__":
    main()
