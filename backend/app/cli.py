"""Management CLI for the role registry and user accounts.

Usage:
    python -m app.cli roles                                  # Role matrix
    python -m app.cli templates                              # Permission templates
    python -m app.cli resolve "Data Entry" --override system.audit
    python -m app.cli create-user --email a@b.org --name "A B" --role Admin
"""

import argparse
import asyncio
import getpass
import sys

from sqlalchemy import select

from app.auth.catalog import unknown_permissions
from app.auth.password import hash_password
from app.auth.permissions import resolve_permissions
from app.auth.roles import PERMISSION_TEMPLATES, ROLE_DEFINITIONS, is_known_role
from app.database import async_session, init_models
from app.models.user import User


def list_roles() -> int:
    for role in ROLE_DEFINITIONS.values():
        print(f"  {role.name:<22} {len(role.permissions):>3} permissions  {role.description}")
    print(f"\n{len(ROLE_DEFINITIONS)} role(s)")
    return 0


def list_templates() -> int:
    for t in PERMISSION_TEMPLATES.values():
        print(f"  {t.key:<22} {t.name}")
        for perm in sorted(t.permissions):
            print(f"      {perm}")
    return 0


def resolve(role: str, overrides: list[str]) -> int:
    """Print the effective permission set for a role plus overrides."""
    if not is_known_role(role):
        print(f"Unknown role '{role}' (resolves to overrides only)", file=sys.stderr)
    unknown = unknown_permissions(overrides)
    if unknown:
        print(f"Not in catalog: {', '.join(unknown)}", file=sys.stderr)

    perms = resolve_permissions(role, overrides)
    for perm in perms:
        print(f"  {perm}")
    print(f"\n{len(perms)} permission(s)")
    return 0


async def create_user(email: str, full_name: str, role: str, location: str | None) -> int:
    if not is_known_role(role):
        print(f"Unknown role '{role}'", file=sys.stderr)
        return 1

    password = getpass.getpass("Password: ")
    if len(password) < 8:
        print("Password must be at least 8 characters", file=sys.stderr)
        return 1

    await init_models()
    async with async_session() as db:
        existing = await db.execute(select(User).where(User.email == email))
        if existing.scalar_one_or_none():
            print(f"User {email} already exists", file=sys.stderr)
            return 1

        user = User(
            email=email,
            hashed_password=hash_password(password),
            full_name=full_name,
            role=role,
            location=location,
            permission_overrides=[],
        )
        db.add(user)
        await db.commit()
        print(f"Created {email} ({role}) id={user.id}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="python -m app.cli")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("roles", help="List roles and their permission counts")
    sub.add_parser("templates", help="List permission templates")

    p_resolve = sub.add_parser("resolve", help="Show effective permissions")
    p_resolve.add_argument("role")
    p_resolve.add_argument("--override", action="append", default=[], metavar="TOKEN")

    p_create = sub.add_parser("create-user", help="Create a user account")
    p_create.add_argument("--email", required=True)
    p_create.add_argument("--name", required=True)
    p_create.add_argument("--role", default="Viewer")
    p_create.add_argument("--location")

    args = parser.parse_args(argv)

    if args.command == "roles":
        return list_roles()
    if args.command == "templates":
        return list_templates()
    if args.command == "resolve":
        return resolve(args.role, args.override)
    return asyncio.run(create_user(args.email, args.name, args.role, args.location))


if __name__ == "__main__":
    sys.exit(main())
