"""
创建超级管理员账号

超级管理员不属于任何租户，只能通过此脚本创建。

用法示例：
    uv run python scripts/create_superadmin.py --username root --email root@example.com
    uv run python scripts/create_superadmin.py --username root --email root@example.com --password 'S3cure!pass'
"""

import argparse
import asyncio
import getpass
import sys

from jcms.auth.passwords import ensure_password_policy, hash_password
from jcms.auth.permissions import SUPERADMIN
from jcms.db.session import SessionLocal
from jcms.exceptions import DomainError
from jcms.models import User
from jcms.services.users import ensure_unique_identity


async def create_superadmin(username: str, email: str, password: str) -> User:
    ensure_password_policy(password)
    async with SessionLocal() as session:
        await ensure_unique_identity(session, username, email)
        user = User(
            tenant_id=None,
            username=username,
            email=email.lower(),
            hashed_password=hash_password(password),
            role=SUPERADMIN,
            is_active=True,
        )
        session.add(user)
        await session.commit()
        return user


async def main():
    parser = argparse.ArgumentParser(description="Create a superadmin account")
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", help="Prompted for when omitted")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password: ")

    try:
        user = await create_superadmin(args.username, args.email, password)
    except DomainError as exc:
        print(f"Error [{exc.code}]: {exc.detail}", file=sys.stderr)
        sys.exit(1)
    print(f"Created superadmin {user.username} ({user.id})")


if __name__ == "__main__":
    asyncio.run(main())
