#!/usr/bin/env python
"""Initialize database tables, optionally with demo users and events."""

import asyncio
import sys

from sqlalchemy import select

from src.core.config import settings
from src.db.database import async_session_maker, init_db
from src.db.models.event import Event, EventStatus
from src.db.models.user import UserAccount, UserRole


DEMO_USERS = [
    ("demo-u1", "Asha Rao", "Acme", UserRole.USER),
    ("demo-u2", "Ben Ortiz", "Acme", UserRole.CORPORATE_ADMIN),
    ("demo-u3", "Chen Wei", "Globex", UserRole.USER),
    ("demo-u4", "Dana Kim", None, UserRole.USER),
]

DEMO_EVENTS = [
    ("demo-e1", "Friday Cricket", "Cricket", "Acme", ["demo-u1", "demo-u2"]),
    ("demo-e2", "Lunch Cricket", "Cricket", None, ["demo-u2", "demo-u3"]),
    ("demo-e3", "5-a-side", "Football", "Globex", ["demo-u3", "demo-u4"]),
]


async def seed_demo_data() -> None:
    """Insert demo users and completed events unless they already exist."""
    async with async_session_maker() as session:
        result = await session.execute(select(UserAccount).where(UserAccount.id == "demo-u1"))
        if result.scalar_one_or_none():
            print("Demo data already present")
            return

        for user_id, name, company, role in DEMO_USERS:
            session.add(UserAccount(id=user_id, name=name, company=company, role=role))

        for event_id, title, sport_type, company, participants in DEMO_EVENTS:
            session.add(
                Event(
                    id=event_id,
                    title=title,
                    sport_type=sport_type,
                    company=company,
                    status=EventStatus.COMPLETED,
                    participants=participants,
                    max_participants=10,
                    created_by=participants[0],
                )
            )

        await session.commit()
        print(f"Seeded {len(DEMO_USERS)} users and {len(DEMO_EVENTS)} completed events")


async def main(seed: bool) -> None:
    """Main initialization function."""
    print(f"Initializing database: {settings.database_url}")

    # Create tables
    await init_db()
    print("Database tables created")

    if seed:
        await seed_demo_data()

    print("Database initialization complete!")


if __name__ == "__main__":
    asyncio.run(main(seed="--demo" in sys.argv))
