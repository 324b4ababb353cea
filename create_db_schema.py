import asyncio

from config.settings import settings
from core.db import create_all


async def main():
    """
    One-time script to create the courts, sessions and subscriptions tables in
    the database configured by settings.DATABASE_URL (dev alternative to
    `alembic upgrade head`).
    """
    await create_all()
    print(f"✅ Database schema created/updated successfully at {settings.DATABASE_URL}.")


if __name__ == "__main__":
    asyncio.run(main())
