"""
Preview what the notifier would send right now, without sending or moving cursors.

Runs the same fetch -> dedup -> throttle steps as the worker and prints the
message each subscription would get.

Usage:
  python -m scripts.preview_alerts                 # all subscriptions
  python -m scripts.preview_alerts --id 3          # one subscription
"""
from __future__ import annotations

import argparse
import asyncio
import os

from dotenv import load_dotenv

from core.database import get_subscription, list_subscriptions
from core.ebird import EBirdClient
from core.errors import FetchError
from worker.alerts import build_alert_message
from worker.dedup import new_sightings
from worker.throttle import should_notify


async def preview(sub_ids=None, min_interval: float = 60) -> None:
    client = EBirdClient(os.getenv("EBIRD_API_KEY", ""))
    if sub_ids:
        subs = [s for s in (get_subscription(i) for i in sub_ids) if s]
    else:
        subs = list_subscriptions()

    for sub in subs:
        header = f"#{sub.id} {sub.species_common_name} -> {sub.phone}"
        try:
            observations = await client.fetch_recent_observations(
                sub.species_code, sub.latitude, sub.longitude, sub.radius_miles, sub.look_back_days
            )
        except FetchError as exc:
            print(f"{header}: fetch failed ({exc})")
            continue

        fresh = new_sightings(observations, sub.cursor)
        if not fresh:
            print(f"{header}: nothing new ({len(observations)} in feed)")
        elif not should_notify(fresh, sub.cursor, min_interval):
            print(f"{header}: {len(fresh)} new, throttled")
        else:
            print(f"{header}: WOULD SEND\n  {build_alert_message(sub, fresh)}")


def main() -> None:
    load_dotenv(override=True)
    parser = argparse.ArgumentParser(description="Preview pending BirdTrail alerts")
    parser.add_argument("--id", type=int, action="append", dest="ids", help="subscription id (repeatable)")
    parser.add_argument(
        "--min-interval",
        type=float,
        default=float(os.getenv("MIN_NOTIFICATION_MINUTES", "60")),
        help="throttle interval in minutes",
    )
    args = parser.parse_args()
    asyncio.run(preview(args.ids, args.min_interval))


if __name__ == "__main__":
    main()
