#!/usr/bin/env python3
"""
Delivery and Replay - payhook Demo Application

Simulates an unreliable webhook channel (drops, redeliveries and
reordering) against in-memory collaborators, then runs a recovery scan
that replays the events the endpoint never saw.

Run modes:
  python main.py                          # Demo with 40 events
  python main.py --count 200 --drop 0.2   # More traffic, more loss
  python main.py --mode simple            # Single-page recovery
"""

import argparse
import asyncio
import json
import random

from payhook.bootstrap import build_services
from payhook.core.config import DEVELOPMENT
from payhook.core.event import WebhookEvent
from payhook.core.logging import configure_logging
from payhook.core.recovery import RecoveryMode
from payhook.source.memory import InMemoryEventSource
from payhook.store.memory import InMemoryEventStore

EVENT_TYPES = [
    ("customer.subscription.updated", "sub", {"status": "active"}),
    ("invoice.payment_succeeded", "in", {"customer": "cus_demo", "total": 1999}),
    ("invoice.payment_failed", "in", {"customer": "cus_demo", "total": 1999}),
    ("payment_intent.succeeded", "pi", {"amount": 500, "currency": "usd"}),
    ("setup_intent.succeeded", "seti", {"customer": "cus_demo", "payment_method": "pm_demo"}),
    ("charge.refunded", "ch", {}),
]


def generate_events(count: int, start: int, rng: random.Random) -> list[WebhookEvent]:
    events = []
    for i in range(count):
        event_type, prefix, fields = rng.choice(EVENT_TYPES)
        events.append(
            WebhookEvent(
                id=f"evt_{i:05d}",
                type=event_type,
                created=start + i * 30,
                data={"object": {"id": f"{prefix}_{rng.randint(1, 5)}", **fields}},
            )
        )
    return events


def unreliable_channel(
    events: list[WebhookEvent], drop: float, duplicate: float, rng: random.Random
) -> list[WebhookEvent]:
    """Drop, repeat and locally shuffle deliveries."""
    delivered = []
    for event in events:
        if rng.random() < drop:
            continue
        delivered.append(event)
        if rng.random() < duplicate:
            delivered.append(event)
    for i in range(0, len(delivered) - 1, 2):
        if rng.random() < 0.2:
            delivered[i], delivered[i + 1] = delivered[i + 1], delivered[i]
    return delivered


async def run_demo(args: argparse.Namespace) -> None:
    rng = random.Random(args.seed)
    start = 1_700_000_000
    events = generate_events(args.count, start, rng)

    store = InMemoryEventStore()
    services = build_services(DEVELOPMENT, store, InMemoryEventSource(events))

    accepted = rejected = 0
    for event in unreliable_channel(events, args.drop, args.duplicate, rng):
        if await services.processor.process(event):
            accepted += 1
        else:
            rejected += 1

    end = start + args.count * 30
    stats = await services.recovery.run(RecoveryMode(args.mode), start, end)

    print(
        json.dumps(
            {
                "upstreamEvents": len(events),
                "liveAccepted": accepted,
                "liveRejected": rejected,
                "recovery": stats.as_dict(),
                "dispatch": {
                    "routed": dict(services.processor.dispatcher.get_stats().routed),
                    "unhandled": services.processor.dispatcher.get_stats().unhandled,
                },
            },
            indent=2,
        )
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="payhook delivery and replay demo")
    parser.add_argument("--count", type=int, default=40, help="Number of upstream events")
    parser.add_argument("--drop", type=float, default=0.15, help="Delivery loss rate")
    parser.add_argument("--duplicate", type=float, default=0.1, help="Redelivery rate")
    parser.add_argument("--mode", choices=[m.value for m in RecoveryMode], default="chunked")
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    configure_logging(args.log_level)
    asyncio.run(run_demo(args))


if __name__ == "__main__":
    main()
