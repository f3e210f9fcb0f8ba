#!/usr/bin/env python3
"""
Settle finished tournaments.

Intended to be run periodically by an external scheduler (cron, Cloud
Scheduler, a Kubernetes CronJob, ...).

Commands:
    run             Settle every tournament whose end time has passed (default)
    stuck           List tournaments stuck in 'processing'
    requeue ID      Move a stuck tournament back to 'active' for the next run
    finish ID       Mark a stuck tournament 'finished' without retrying it

Exit code is 1 if any tournament failed or the job itself crashed.
"""

import argparse
import asyncio
import logging
import os
import sys

# Add apps to path (so fairway.* imports work)
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
apps_path = os.path.join(project_root, "apps")
sys.path.insert(0, apps_path)

from fairway.database import db  # noqa: E402
from fairway.database.repositories import SettlementGateway  # noqa: E402
from fairway.services.settings_service import configure_logging, load_settings  # noqa: E402
from fairway.services.settlement_service import SettlementService  # noqa: E402
from fairway.services.tournament_lifecycle import TournamentLifecycleManager  # noqa: E402
from fairway.utils.datetime_utils import utcnow  # noqa: E402


async def run_sweep() -> int:
    settings = load_settings()
    gateway = SettlementGateway.from_session_factory(db.AsyncSessionLocal)
    summary = await SettlementService(gateway, settings).run_sweep()

    print("=" * 60)
    print("📊 Summary")
    print("=" * 60)
    print(f"Tournaments found: {summary.tournaments_found}")
    print(f"✅ Successful: {summary.succeeded}")
    print(f"⏭️  Skipped (already claimed): {summary.skipped}")
    print(f"❌ Failed: {summary.failed}")
    if summary.stuck:
        print(f"⚠️  Stuck in processing: {summary.stuck}")

    if summary.failed:
        print("\nFailed tournaments (left in 'processing', manual intervention required):")
        for outcome in summary.tournaments:
            if outcome.status.value == "failed":
                print(f"  - {outcome.tournament_name} (ID: {outcome.tournament_id}): {outcome.reason}")

    if summary.action_counts:
        print("\nActions breakdown:")
        for action, count in summary.action_counts.items():
            print(f"  - {action}: {count}")

    return 1 if summary.failed else 0


async def list_stuck() -> int:
    settings = load_settings()
    gateway = SettlementGateway.from_session_factory(db.AsyncSessionLocal)
    stuck = await TournamentLifecycleManager(gateway).find_stuck_tournaments(
        utcnow(), settings.stuck_after_minutes
    )
    if not stuck:
        print("No tournaments stuck in processing.")
        return 0
    print(f"{len(stuck)} tournament(s) stuck in processing:")
    for tournament in stuck:
        print(f"  - {tournament.name} (ID: {tournament.id}), last update {tournament.updated_at}")
    return 0


async def transition(tournament_id: str, action: str) -> int:
    gateway = SettlementGateway.from_session_factory(db.AsyncSessionLocal)
    lifecycle = TournamentLifecycleManager(gateway)
    if action == "requeue":
        changed = await lifecycle.requeue(tournament_id)
    else:
        changed = await lifecycle.force_finish(tournament_id)

    if changed:
        print(f"✓ Tournament {tournament_id}: {action} done")
        return 0
    print(f"❌ Tournament {tournament_id} is not in 'processing'; nothing changed")
    return 1


async def main(args: argparse.Namespace) -> int:
    try:
        if args.command == "stuck":
            return await list_stuck()
        if args.command in ("requeue", "finish"):
            return await transition(args.tournament_id, args.command)
        return await run_sweep()
    finally:
        await db.engine.dispose()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Settle finished tournaments")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Settle every due tournament (default)")
    subparsers.add_parser("stuck", help="List tournaments stuck in processing")
    requeue = subparsers.add_parser("requeue", help="Retry a stuck tournament on the next run")
    requeue.add_argument("tournament_id")
    finish = subparsers.add_parser("finish", help="Mark a stuck tournament finished")
    finish.add_argument("tournament_id")
    return parser.parse_args(argv)


if __name__ == "__main__":
    configure_logging()
    try:
        exit_code = asyncio.run(main(parse_args()))
    except Exception:
        logging.getLogger(__name__).exception("❌ Fatal error in settlement job")
        exit_code = 1
    sys.exit(exit_code)
