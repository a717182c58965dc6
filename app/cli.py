"""CLI commands for the social network backend."""

import argparse
import getpass
import sys
from datetime import date

from sqlalchemy.orm import Session

from app.config import settings
from app.database import SessionLocal
from app.errors import ConflictError
from app.services.auth import LocalAuthProvider
from app.services.session_store import SessionStore


def create_user(
    email: str,
    first_name: str,
    last_name: str,
    date_of_birth: str,
    password: str | None = None,
    nickname: str | None = None,
    private: bool = False,
) -> None:
    """Create a user account."""
    db: Session = SessionLocal()

    try:
        # Get password if not provided
        if not password:
            password = getpass.getpass("Password: ")
            password_confirm = getpass.getpass("Confirm password: ")
            if password != password_confirm:
                print("Error: Passwords do not match.")
                sys.exit(1)

        if len(password) < 8:
            print("Error: Password must be at least 8 characters.")
            sys.exit(1)

        try:
            birthday = date.fromisoformat(date_of_birth)
        except ValueError:
            print("Error: Date of birth must be YYYY-MM-DD.")
            sys.exit(1)

        provider = LocalAuthProvider(SessionStore(ttl=settings.session_ttl))
        try:
            user = provider.create_user(
                db,
                email=email,
                password=password,
                first_name=first_name,
                last_name=last_name,
                date_of_birth=birthday,
                nickname=nickname,
                private=private,
            )
        except ConflictError as e:
            print(f"Error: {e.message}")
            sys.exit(1)

        print(f"User created successfully: {user.email} (id {user.id})")

    finally:
        db.close()


def purge_sessions() -> None:
    """Delete expired sessions now."""
    from app.workers.session_worker import purge_once

    count = purge_once()
    print(f"Purged {count} expired sessions")


def schedule_purge() -> None:
    """Enqueue the self-rescheduling purge job."""
    from app.workers.session_worker import purge_expired_sessions

    purge_expired_sessions.send(reschedule=True)
    print("Session purge scheduled")


def main():
    parser = argparse.ArgumentParser(description="Social network CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # create-user command
    create_user_parser = subparsers.add_parser("create-user", help="Create a user")
    create_user_parser.add_argument("--email", required=True, help="Email address")
    create_user_parser.add_argument("--first-name", required=True)
    create_user_parser.add_argument("--last-name", required=True)
    create_user_parser.add_argument(
        "--date-of-birth", required=True, help="Date of birth (YYYY-MM-DD)"
    )
    create_user_parser.add_argument("--nickname")
    create_user_parser.add_argument("--private", action="store_true")
    create_user_parser.add_argument(
        "--password", help="Password (will prompt if not provided)"
    )

    subparsers.add_parser("purge-sessions", help="Delete expired sessions now")
    subparsers.add_parser(
        "schedule-purge", help="Start the recurring session purge job"
    )

    args = parser.parse_args()

    if args.command == "create-user":
        create_user(
            args.email,
            args.first_name,
            args.last_name,
            args.date_of_birth,
            password=args.password,
            nickname=args.nickname,
            private=args.private,
        )
    elif args.command == "purge-sessions":
        purge_sessions()
    elif args.command == "schedule-purge":
        schedule_purge()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
