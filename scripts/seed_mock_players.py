#!/usr/bin/env python3
"""
Seed a local dev database with mock players.

Creates whitelisted players (plus one admin) so the quorum flow can be tried
by hand. Idempotent: existing ids are updated, not duplicated. With --sunday,
the players also vote yes for that date, which creates the game once ten of
them have voted.

Usage:
    python scripts/seed_mock_players.py --count 12 --sunday 2030-03-03
"""

import argparse
import asyncio
import os
import sys
from datetime import date

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from futbol.database.db import AsyncSessionLocal, init_database  # noqa: E402
from futbol.services import auth_service, user_service, vote_service  # noqa: E402

ADMIN_ID = "mock_admin"


def mock_players(count: int):
    players = [
        {
            "id": f"mock_player_{i:02d}",
            "email": f"mock_player_{i:02d}@example.com",
            "name": f"Jugador {i:02d}",
            "is_whitelisted": True,
            "is_admin": False,
        }
        for i in range(1, count + 1)
    ]
    players.append(
        {
            "id": ADMIN_ID,
            "email": "mock_admin@example.com",
            "name": "Admin Mock",
            "is_whitelisted": True,
            "is_admin": True,
        }
    )
    return players


async def main():
    parser = argparse.ArgumentParser(description="Seed mock players for local testing")
    parser.add_argument("--count", type=int, default=12, help="Number of mock players")
    parser.add_argument("--sunday", type=date.fromisoformat, default=None,
                        help="Sunday (YYYY-MM-DD) every mock player votes yes for")
    args = parser.parse_args()

    await init_database()
    players = mock_players(args.count)

    async with AsyncSessionLocal() as session:
        result = await user_service.bulk_upsert(session, players)
        print(f"✅ Players: {result['created']} created, {result['updated']} updated")

        if args.sunday:
            for player in players[:-1]:
                outcome = await vote_service.record_day_vote(
                    session, player["id"], args.sunday.year, args.sunday.month, args.sunday.day, "yes"
                )
                if outcome.get("game_created"):
                    print(f"⚽ Game created for {args.sunday.isoformat()}")
            print(f"🗳️  {len(players) - 1} yes votes cast for {args.sunday.isoformat()}")

    token = auth_service.create_access_token({"sub": ADMIN_ID, "email": "mock_admin@example.com"})
    print("\n💡 Admin bearer token (local HS256 key only):")
    print(f"   {token}\n")


if __name__ == "__main__":
    asyncio.run(main())
