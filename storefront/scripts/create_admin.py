# storefront/scripts/create_admin.py
"""
Create (or promote) an admin account.

    python -m storefront.scripts.create_admin admin@example.com 'S3cret-pass'
"""
import argparse
import asyncio

from sqlalchemy.future import select

from storefront.core.db import AsyncSessionLocal, init_models
from storefront.core.security import hash_password
from storefront.models.user_models import ROLE_ADMIN, User


async def create_admin(username: str, password: str, full_name: str | None = None) -> User:
    await init_models()
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.username == username))
        admin = result.scalars().first()
        if admin:
            admin.role = ROLE_ADMIN
            admin.is_active = True
        else:
            admin = User(
                username=username,
                full_name=full_name,
                password_hash=hash_password(password),
                role=ROLE_ADMIN,
                is_active=True,
            )
            session.add(admin)
        await session.commit()
        return admin


def main():
    parser = argparse.ArgumentParser(description="Create a storefront admin user")
    parser.add_argument("username")
    parser.add_argument("password")
    parser.add_argument("--full-name", default=None)
    args = parser.parse_args()

    admin = asyncio.run(create_admin(args.username, args.password, args.full_name))
    print(f"Admin user '{admin.username}' ready (ID: {admin.id})")


if __name__ == "__main__":
    main()
