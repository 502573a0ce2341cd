from __future__ import annotations

import argparse

from sqlalchemy import select

from venuesync.core.security import hash_password
from venuesync.db.session import SessionLocal
from venuesync.models.user import User
from venuesync.services.auth_service import normalize_email

# Import models to register with SQLAlchemy
import venuesync.models  # noqa: F401


def main() -> int:
    parser = argparse.ArgumentParser(description="Create or reset a venue owner account")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--inactive", action="store_true")

    args = parser.parse_args()

    email = normalize_email(args.email)

    db = SessionLocal()
    try:
        u = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if u is None:
            u = User(email=email, name=args.name, hashed_password=hash_password(args.password), is_active=not args.inactive)
            db.add(u)
            db.commit()
            print(f"Created user: {u.email} ({u.id})")
            return 0

        u.name = args.name
        u.hashed_password = hash_password(args.password)
        u.is_active = not args.inactive
        db.commit()
        print(f"Updated user: {u.email} ({u.id})")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
