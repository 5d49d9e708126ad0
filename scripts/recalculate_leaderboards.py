#!/usr/bin/env python
"""Recalculate every leaderboard partition from the command line."""

import asyncio
import sys

# Fix Windows asyncio
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Add project to path
sys.path.insert(0, str(__file__).rsplit("\\", 2)[0])
sys.path.insert(0, str(__file__).rsplit("/", 2)[0])


async def recalculate_leaderboards() -> int:
    from src.core.exceptions import LeaderboardError
    from src.db.database import worker_session
    from src.db.models.job import RunTrigger
    from src.services.aggregation_service import LeaderboardAggregationService
    from src.services.leaderboard_service import LeaderboardService
    from src.services.lock_service import AggregationLock, create_redis_client

    print("=" * 60)
    print("RECALCULATING ALL LEADERBOARDS")
    print("=" * 60)

    redis_client = create_redis_client()
    try:
        async with worker_session() as db:
            service = LeaderboardAggregationService(db, AggregationLock(redis_client))
            try:
                result = await service.run(RunTrigger.CLI)
            except LeaderboardError as e:
                print(f"\nAggregation did not run: {e}")
                return 1

            print(f"\n  Completed events processed: {result.events_processed}")
            print(f"  Users ranked:               {result.users_ranked}")
            print(f"  Partitions published:       {result.partitions_published}")
            print(f"  Duration:                   {result.duration_seconds:.2f}s")

            snapshot = await LeaderboardService(db).get_leaderboard("global_all")
            entries = snapshot.rankings[:10] if snapshot else []

            print("\nTop 10 (global, all sports):")
            print("-" * 70)
            print(f"{'Rank':<6}{'Name':<25}{'Company':<20}{'Score':<10}{'Events':<8}")
            print("-" * 70)
            for entry in entries:
                print(
                    f"{entry['rank']:<6}"
                    f"{entry['user_name'][:24]:<25}"
                    f"{entry['company'][:19]:<20}"
                    f"{entry['score']:<10}"
                    f"{entry['events_attended']:<8}"
                )
            print("-" * 70)
    finally:
        await redis_client.aclose()

    print("\nLeaderboard recalculation complete!")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(recalculate_leaderboards()))
