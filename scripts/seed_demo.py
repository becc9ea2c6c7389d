#!/usr/bin/env python3
"""Seed a database with demo users, listings and activity."""

import argparse
import asyncio
import random
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from luminarias.config import LedgerConfig
from luminarias.errors import InsufficientBalance
from luminarias.escrow import EscrowService
from luminarias.ledger import Classification, Ledger
from luminarias.storage import StorageManager
from luminarias.store import StoreService
from luminarias.transfer import TransferService

CREATOR_LEVELS = ["novato", "constructor", "orador", "visionario", "maestro", "experto", "gurú"]
SERVICE_CATEGORIES = ["mentoring", "design", "coaching", "review"]


async def seed_users(storage, ledger, count: int, creators: int) -> list:
    print(f"Creating {count} users ({creators} creators)...")
    user_ids = []
    for i in range(count):
        role = "creator" if i < creators else "user"
        async with ledger.unit_of_work() as uow:
            user_id = await storage.users.insert(
                f"demo-{i:04d}", role=role,
                creator_level=random.choice(CREATOR_LEVELS) if role == "creator" else "",
                api_key=f"demo-key-{i:04d}",
            )
            await uow.open_account(user_id, ledger.config.starting_grant)
        user_ids.append(user_id)
    return user_ids


async def seed_earnings(ledger, user_ids: list, per_user: int):
    print(f"Crediting {per_user} challenge rewards per user...")
    for user_id in user_ids:
        for _ in range(per_user):
            await ledger.apply_transaction(
                user_id, "earn", random.randint(10, 500),
                Classification("challenges", "daily", "challenge_completed", "Daily challenge"),
            )


async def seed_activity(ledger, user_ids: list, creators: int, transfers: int):
    escrow = EscrowService(ledger)
    store = StoreService(ledger)
    transfer = TransferService(ledger)

    services = []
    for provider_id in user_ids[:creators]:
        services.append(await escrow.create_service(
            provider_id, f"Session by {provider_id}", "", random.choice(SERVICE_CATEGORIES),
            random.randint(50, 400), max_clients=random.choice([None, 3, 5]),
        ))
    items = [
        await store.create_item("Profile frame", "cosmetics", 150, subcategory="frames"),
        await store.create_item("Boost x2", "boosts", 300, duration_days=7, stock=100),
    ]

    print(f"Running {transfers} transfers, bookings and purchases...")
    for _ in range(transfers):
        a, b = random.sample(user_ids, 2)
        try:
            await transfer.transfer(a, b, random.randint(1, 100), "demo")
            service = random.choice(services)
            if service["provider_id"] != a:
                booking = await escrow.book(service["id"], a)
                if random.random() < 0.7:
                    await escrow.complete(booking["id"], booking["provider_id"])
                else:
                    await escrow.cancel(booking["id"], acting_user_id=a)
            await store.purchase(b, random.choice(items)["id"])
        except InsufficientBalance:
            continue


async def main():
    parser = argparse.ArgumentParser(description="Seed demo Luminarias data")
    parser.add_argument("--db-path", default="data/luminarias.db")
    parser.add_argument("--users", type=int, default=50)
    parser.add_argument("--creators", type=int, default=10)
    parser.add_argument("--rewards", type=int, default=5)
    parser.add_argument("--transfers", type=int, default=200)
    args = parser.parse_args()

    Path(args.db_path).parent.mkdir(parents=True, exist_ok=True)
    storage = StorageManager(args.db_path)
    await storage.initialize()
    try:
        ledger = Ledger(storage, LedgerConfig())
        user_ids = await seed_users(storage, ledger, args.users, args.creators)
        await seed_earnings(ledger, user_ids, args.rewards)
        await seed_activity(ledger, user_ids, args.creators, args.transfers)
        total = await storage.accounts.total_balance()
        print(f"Done: {len(user_ids)} users, {total} Luminarias in circulation")
    finally:
        await storage.close()


if __name__ == "__main__":
    asyncio.run(main())
