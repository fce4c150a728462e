"""Management CLI.

Usage:
    python -m palmtrack.cli create-admin EMAIL "FULL NAME" [PASSWORD]
    python -m palmtrack.cli generate-reconciliations YYYY-MM

create-admin prints a generated temporary password when none is given;
the account must change it on first login.  generate-reconciliations
creates or refreshes the month's row for every ACTIVE agent, recorded
against the oldest active admin.
"""

import asyncio
import sys

from sqlalchemy import select

from palmtrack.auth.password import generate_temp_password, hash_password
from palmtrack.database import async_session
from palmtrack.models.user import User, UserRole
from palmtrack.schemas.reconciliation import parse_month
from palmtrack.services.reconciliation import generate_for_active_agents


async def create_admin(email: str, full_name: str, password: str | None = None) -> int:
    temporary = password is None
    password = password or generate_temp_password()
    async with async_session() as db:
        existing = await db.scalar(select(User).where(User.email == email.lower()))
        if existing:
            print(f"User {email} already exists.")
            return 1
        db.add(User(
            email=email.lower(),
            hashed_password=hash_password(password),
            full_name=full_name,
            role=UserRole.ADMIN,
            must_change_password=temporary,
        ))
        await db.commit()
    print(f"  Created admin {email}")
    if temporary:
        print(f"  Temporary password: {password}")
    return 0


async def generate_reconciliations(month_text: str) -> int:
    try:
        month = parse_month(month_text)
    except ValueError:
        print(f"Invalid month: {month_text} (expected YYYY-MM)")
        return 1

    async with async_session() as db:
        actor = await db.scalar(
            select(User)
            .where(User.role == UserRole.ADMIN, User.is_active.is_(True))
            .order_by(User.created_at)
            .limit(1)
        )
        if actor is None:
            print("No active admin to record the run against. Run create-admin first.")
            return 1
        try:
            rows = await generate_for_active_agents(db, month, actor)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    for row in rows:
        print(f"  {row.agent_name}: advances {row.total_advance}, "
              f"weight {row.total_weight_kg} kg [{row.status}]")
    print(f"\n{len(rows)} reconciliation(s) for {month:%Y-%m}")
    return 0


def main(argv: list[str]) -> int:
    cmd = argv[1] if len(argv) > 1 else ""
    if cmd == "create-admin" and len(argv) in (4, 5):
        return asyncio.run(create_admin(*argv[2:]))
    if cmd == "generate-reconciliations" and len(argv) == 3:
        return asyncio.run(generate_reconciliations(argv[2]))
    print(
        "Usage: python -m palmtrack.cli "
        "[create-admin EMAIL NAME [PASSWORD] | generate-reconciliations YYYY-MM]"
    )
    return 2


if __name__ == "__main__":
    sys.exit(main(sys.argv))
