"""
Script to create a user with a password (and optionally a workspace) for local testing.

    python -m app.scripts.create_local_user --email ana@example.com --password longenough1 \
        --name Ana --workspace "Ana's team"
"""

import argparse
import asyncio
from typing import Optional

from sqlmodel import select

from app.core.auth import hash_password
from app.core.database import get_session_context, init_db
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember


async def create_user(email: str, password: str, name: str, workspace_name: Optional[str]) -> None:
    await init_db()

    async with get_session_context() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if not user:
            user = User(name=name, email=email, password_hash=hash_password(password))
            session.add(user)
            await session.flush()
            print(f"Created user: {email}")
        else:
            print(f"User {email} already exists.")

        if workspace_name:
            workspace = Workspace(name=workspace_name)
            session.add(workspace)
            await session.flush()
            session.add(WorkspaceMember(workspace_id=workspace.id, user_id=user.id, role="admin"))
            print(f"Created workspace '{workspace_name}' with {email} as admin.")

    print("Done.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a local user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--name", help="Display name (defaults to the email local part)")
    parser.add_argument("--workspace", help="Also create a workspace owned by the user")
    args = parser.parse_args()

    asyncio.run(create_user(args.email, args.password, args.name or args.email.split("@")[0], args.workspace))


if __name__ == "__main__":
    main()
