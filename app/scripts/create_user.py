"""
Create a user (e.g. first admin) without going through the API. Run from project root:
  python -m app.scripts.create_user NAME EMAIL PASSWORD [role]
Example:
  python -m app.scripts.create_user "Jane Admin" jane@example.com your-secure-password admin
"""
import argparse
import asyncio
import logging
import sys

from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.schemas.auth import NAME_MAX_LEN, NAME_MIN_LEN, PASSWORD_MAX_LEN, PASSWORD_MIN_LEN
from app.services.auth import CredentialService, DuplicateAccount, HashingFailure, Ok
from app.services.user_store import SqlAlchemyUserStore


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a Warden user account.")
    parser.add_argument("name", help=f"Display name ({NAME_MIN_LEN}-{NAME_MAX_LEN} chars)")
    parser.add_argument("email", help="Email address (login key)")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("role", nargs="?", default="user", choices=["user", "admin"])
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=get_settings().LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )

    name = args.name.strip()
    if not (NAME_MIN_LEN <= len(name) <= NAME_MAX_LEN):
        print("Invalid name length.", file=sys.stderr)
        return 1
    try:
        validate_email(args.email.strip())
    except PydanticCustomError:
        print("Invalid email address.", file=sys.stderr)
        return 1
    if not (PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
        print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        service = CredentialService(SqlAlchemyUserStore(db))
        result = asyncio.run(service.create_user(name, args.email, args.password, args.role))
    finally:
        db.close()

    if isinstance(result, Ok):
        print(f"Created user '{result.user.email}' (id={result.user.id}) with role '{result.user.role}'.")
        return 0
    if isinstance(result, DuplicateAccount):
        print(f"User '{result.email}' already exists.", file=sys.stderr)
    elif isinstance(result, HashingFailure):
        print("Could not hash the password.", file=sys.stderr)
    else:
        print("Could not store the user.", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
