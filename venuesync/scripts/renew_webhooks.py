from __future__ import annotations

import argparse
import asyncio
import logging

from venuesync.core.config import get_settings
from venuesync.db.session import SessionLocal
from venuesync.services.audit_service import write_audit_log
from venuesync.services.calendar_webhooks import renew_expiring_subscriptions
from venuesync.services.google_client import GoogleCalendarClient

# Import models to register with SQLAlchemy
import venuesync.models  # noqa: F401


async def run(within_hours: int | None) -> int:
    settings = get_settings()
    google = GoogleCalendarClient(
        settings.google_client_id,
        settings.google_client_secret,
        settings.oauth_redirect_uri,
        scopes=settings.google_scopes,
        timeout=settings.google_http_timeout_seconds,
    )
    db = SessionLocal()
    try:
        renewed = await renew_expiring_subscriptions(db, google, within_hours=within_hours)
        if renewed:
            write_audit_log(
                db,
                actor_user_id=None,
                action_type="WEBHOOK_RENEW",
                target_type="webhook",
                summary="Renewed expiring calendar webhooks",
                diff_json={"renewed": renewed},
                request=None,
            )
        return renewed
    finally:
        db.close()
        await google.aclose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Re-register Google Calendar push channels that are about to expire")
    parser.add_argument("--within-hours", type=int, default=None)
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    renewed = asyncio.run(run(args.within_hours))
    print(f"renewed: {renewed}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
