from __future__ import annotations

import argparse

from venuesync.db.session import SessionLocal
from venuesync.models.venue import STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED, Venue
from venuesync.services.audit_service import write_audit_log

# Import models to register with SQLAlchemy
import venuesync.models  # noqa: F401

STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)


def main() -> int:
    parser = argparse.ArgumentParser(description="Approve or reject a venue")
    parser.add_argument("venue_id")
    parser.add_argument("status", choices=STATUSES)

    args = parser.parse_args()

    db = SessionLocal()
    try:
        v = db.get(Venue, args.venue_id)
        if v is None:
            print("venue_not_found")
            return 1

        previous = v.status
        v.status = args.status
        db.commit()
        write_audit_log(
            db,
            actor_user_id=None,
            action_type="VENUE_STATUS",
            target_type="venue",
            target_id=v.id,
            summary=f"Venue {args.status}",
            diff_json={"from": previous, "to": args.status},
            request=None,
        )
        print(f"{v.name} (owner {v.owner.email}): {previous} -> {args.status}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
