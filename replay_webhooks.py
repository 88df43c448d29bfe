"""
replay_webhooks.py
------------------
Operator script: re-dispatch FrostGuard webhook deliveries that failed
processing, using the raw payload stored in webhook_events.

Only deliveries whose signature verified are replayed.

Usage:
    python replay_webhooks.py                 # every failed delivery
    python replay_webhooks.py --id <record>   # one delivery by record id
"""

import argparse
import asyncio
import sys

from lorasim.core.logging import configure_logging
from lorasim.db.session import AsyncSessionLocal, engine
from lorasim.services.webhook_service import WebhookEventLog


async def replay(record_id: str | None) -> int:
    async with AsyncSessionLocal() as db:
        if record_id:
            event = await WebhookEventLog.get(db, record_id)
            if event is None:
                print(f"No webhook event with id {record_id}")
                return 1
            if not event.signature_valid:
                print(f"Refusing to replay {record_id}: signature did not verify")
                return 1
            events = [event]
        else:
            events = await WebhookEventLog.list_failed(db)
        pending = [(e.id, e.event_type, e.payload) for e in events]

        failures = 0
        for event_id, event_type, payload in pending:
            ok = await WebhookEventLog.replay(db, event_id, payload)
            print(f"{event_id}  {event_type:<28} {'ok' if ok else 'FAILED'}")
            failures += 0 if ok else 1

    await engine.dispose()
    print(f"Replayed {len(pending)} event(s), {failures} failure(s).")
    return 1 if failures else 0


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n")[0])
    parser.add_argument("--id", dest="record_id", help="webhook_events.id to replay")
    args = parser.parse_args()
    configure_logging()
    sys.exit(asyncio.run(replay(args.record_id)))


if __name__ == "__main__":
    main()
