"""CLI interface for Thai Script SRS.

Usage:
    python -m thai_srs review              Start a review session
    python -m thai_srs stats               Show your statistics
    python -m thai_srs due                 Show how many items are due
    python -m thai_srs add "ก"             Add an item to the deck
    python -m thai_srs levels              Show level progress
    python -m thai_srs export backup.json  Export progress as JSON
    python -m thai_srs import backup.json  Import progress from JSON
    python -m thai_srs reset --yes         Clear all progress
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.analytics import (
    confusion_pairs,
    difficult_items,
    new_introduced_today,
    overall_accuracy,
    review_streak_days,
    reviews_today,
)
from backend.config import ms_to_datetime, now_ms, settings
from backend.curriculum import (
    LEVELS,
    character_info,
    check_level_unlocks,
    level_accuracy,
    level_progress,
)
from backend.database import async_session, engine
from backend.models import Base
from backend.models.learner import Learner
from backend.srs.queue import add_item, deck_stats
from backend.srs.serialization import DeckFormatError
from backend.srs.session import start_session
from backend.srs.sm2 import ItemState, days_until_review
from backend.storage import (
    create_learner,
    export_data,
    finish_session,
    import_data,
    load_deck,
    open_deck,
    record_review,
    reset_learner,
    save_deck,
    set_unlocked_levels,
    unlocked_levels,
)


async def ensure_db() -> None:
    """Create tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ensure_learner() -> int:
    """Ensure there's a default learner and return the ID."""
    async with async_session() as db:
        stmt = select(Learner).order_by(Learner.id).limit(1)
        result = await db.execute(stmt)
        learner = result.scalar_one_or_none()
        if learner:
            return learner.id

        learner = await create_learner(db, "Learner")
        return learner.id


async def _load_learner(db: AsyncSession, learner_id: int) -> Learner:
    learner = await db.get(Learner, learner_id)
    if learner is None:
        raise SystemExit(f"Learner {learner_id} not found")
    return learner


async def cmd_review(args: argparse.Namespace) -> None:
    """Run an interactive review session."""
    await ensure_db()
    learner_id = await ensure_learner()

    async with async_session() as db:
        learner = await _load_learner(db, learner_id)
        now = now_ms()
        deck = await open_deck(db, learner, now)
        introduced = await new_introduced_today(db, learner_id, ms_to_datetime(now))
        session = start_session(
            deck,
            now,
            learner_id=learner_id,
            new_introduced_today=introduced,
            longest_streak=learner.longest_streak,
            max_reviews=args.max_reviews,
        )

        stats = deck_stats(deck, now)
        print("\n  Review Session")
        print(
            f"  {stats.due} due, {min(stats.new, session.new_remaining_today)} new available, "
            f"up to {session.remaining} reviews\n"
        )
        print("  Type the romanization. '?' reveals the answer, 'q' quits.\n")

        while True:
            item = session.get_next(now_ms())
            if item is None:
                print("  No more items to review. You're all caught up!")
                break

            label = f"  [{session.stats.reviews + 1}]"
            if item.state is ItemState.NEW:
                label += " (NEW)"
            print(label)
            print(f"\n      {item.key}\n")

            start_time = time.time()
            response = input("  Romanization: ").strip()
            time_ms = int((time.time() - start_time) * 1000)

            if response.lower() == "q":
                print("\n  Session ended early.")
                break

            now = now_ms()
            if response == "?":
                outcome = session.reveal(item.key, time_ms, now)
            else:
                outcome = session.submit_answer(item.key, response, time_ms, now)
            if outcome is None:
                continue

            if outcome.assessment.correct:
                print(f"  Correct! (quality {outcome.quality})")
            else:
                print(f"  {outcome.assessment.feedback}")
                info = character_info(item.key)
                if info:
                    print(f"  {item.key} is '{info.name}' ({info.consonant_class} class)")

            record_review(db, learner_id, outcome, time_ms, now)
            levels = unlocked_levels(learner)
            for number in check_level_unlocks(deck, levels, now):
                print(f"\n  Level {number} unlocked!")
            set_unlocked_levels(learner, levels)
            await save_deck(db, learner_id, deck)
            print(f"  Next review in {days_until_review(outcome.item, now):.0f} days\n")

        await finish_session(db, learner, session)

    s = session.stats
    print("\n  Session Complete!")
    print(
        f"  Reviewed: {s.reviews}  Correct: {s.correct}  "
        f"Accuracy: {session.accuracy:.0f}%  Best streak: {s.longest_streak}\n"
    )


async def cmd_stats(args: argparse.Namespace) -> None:
    """Show learner statistics."""
    await ensure_db()
    learner_id = await ensure_learner()

    async with async_session() as db:
        learner = await _load_learner(db, learner_id)
        deck = await load_deck(db, learner_id)
        now = now_ms()
        now_dt = ms_to_datetime(now)
        stats = deck_stats(deck, now)
        streak = await review_streak_days(db, learner_id, now_dt)
        today = await reviews_today(db, learner_id, now_dt)
        pairs = await confusion_pairs(db, learner_id, settings.confusion_threshold)

    print("\n  Thai Script SRS Statistics")
    print(f"  {'Total items:':<20} {stats.total}")
    print(f"  {'Due now:':<20} {stats.due}")
    print(f"  {'New (unseen):':<20} {stats.new}")
    print(f"  {'Learning:':<20} {stats.learning}")
    print(f"  {'Mature:':<20} {stats.mature}")
    print(f"  {'Total reviews:':<20} {stats.total_reviews}")
    print(f"  {'Accuracy:':<20} {overall_accuracy(deck):.1f}%")
    print(f"  {'Reviews today:':<20} {today}")
    print(f"  {'Day streak:':<20} {streak}")
    print(f"  {'Longest streak:':<20} {learner.longest_streak}")

    difficult = difficult_items(deck, count=5)
    if difficult:
        print("\n  Hardest characters:")
        for summary in difficult:
            print(
                f"    {summary.key}  ease {summary.memory_strength:.2f}  "
                f"accuracy {summary.accuracy:.0f}%"
            )

    if pairs:
        print("\n  Common confusions:")
        for pair in pairs[:5]:
            print(f"    {pair.shown} -> '{pair.answered}' ({pair.count}x)")
    print()


async def cmd_due(args: argparse.Namespace) -> None:
    """Show how many items are due."""
    await ensure_db()
    learner_id = await ensure_learner()

    async with async_session() as db:
        deck = await load_deck(db, learner_id)
        now = now_ms()
        introduced = await new_introduced_today(db, learner_id, ms_to_datetime(now))

    stats = deck_stats(deck, now)
    new_available = min(stats.new, max(0, deck.new_items_per_day - introduced))
    print(f"  {stats.due} items due, {new_available} new items available")


async def cmd_add(args: argparse.Namespace) -> None:
    """Add an item to the deck."""
    await ensure_db()
    learner_id = await ensure_learner()

    async with async_session() as db:
        deck = await load_deck(db, learner_id)
        if args.key in deck.items:
            print(f"  '{args.key}' is already in the deck.")
            return

        add_item(deck, args.key, now_ms())
        await save_deck(db, learner_id, deck)

    print(f"  Added '{args.key}' (ready for review).")


async def cmd_levels(args: argparse.Namespace) -> None:
    """Show progress through each level."""
    await ensure_db()
    learner_id = await ensure_learner()

    async with async_session() as db:
        learner = await _load_learner(db, learner_id)
        deck = await load_deck(db, learner_id)
        unlocked = unlocked_levels(learner)

    print()
    for level in LEVELS:
        progress = level_progress(deck, level.number)
        status = "unlocked" if level.number in unlocked else "locked"
        print(
            f"  [{status:^8}] Level {level.number} {level.name:<13} "
            f"{progress.reviewed_chars}/{progress.total_chars} reviewed, "
            f"{progress.mastered_chars} mastered, "
            f"{level_accuracy(deck, level.number):.0f}% accuracy"
        )
    print()


async def cmd_export(args: argparse.Namespace) -> None:
    """Export progress as JSON."""
    await ensure_db()
    learner_id = await ensure_learner()

    async with async_session() as db:
        learner = await _load_learner(db, learner_id)
        content = await export_data(db, learner)

    if args.path == "-":
        print(content)
        return
    Path(args.path).write_text(content, encoding="utf-8")
    print(f"  Exported progress to {args.path}")


async def cmd_import(args: argparse.Namespace) -> None:
    """Import progress from a JSON backup."""
    await ensure_db()
    learner_id = await ensure_learner()
    text = Path(args.path).read_text(encoding="utf-8")

    async with async_session() as db:
        learner = await _load_learner(db, learner_id)
        try:
            deck = await import_data(db, learner, text)
        except DeckFormatError as exc:
            print(f"  Invalid data format: {exc}", file=sys.stderr)
            raise SystemExit(1) from exc

    print(f"  Imported {len(deck.items)} items.")


async def cmd_reset(args: argparse.Namespace) -> None:
    """Clear all progress."""
    if not args.yes:
        print("  This clears all progress. Re-run with --yes to confirm.")
        return

    await ensure_db()
    learner_id = await ensure_learner()

    async with async_session() as db:
        learner = await _load_learner(db, learner_id)
        await reset_learner(db, learner)

    print("  Progress cleared.")


def main() -> None:
    """Entry point for the Thai Script SRS CLI application."""
    parser = argparse.ArgumentParser(
        prog="thai_srs",
        description="Thai Script SRS: learn the Thai consonants with spaced repetition",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # review
    review_parser = subparsers.add_parser("review", help="Start a review session")
    review_parser.add_argument(
        "--max-reviews", type=int, default=None, help="Max reviews this session"
    )

    # stats
    subparsers.add_parser("stats", help="Show your statistics")

    # due
    subparsers.add_parser("due", help="Show items due for review")

    # add
    add_parser = subparsers.add_parser("add", help="Add an item to the deck")
    add_parser.add_argument("key", help="Item content, e.g. a Thai consonant")

    # levels
    subparsers.add_parser("levels", help="Show level progress")

    # export
    export_parser = subparsers.add_parser("export", help="Export progress as JSON")
    export_parser.add_argument("path", help="Output file, or '-' for stdout")

    # import
    import_parser = subparsers.add_parser("import", help="Import progress from JSON")
    import_parser.add_argument("path", help="Backup file to import")

    # reset
    reset_parser = subparsers.add_parser("reset", help="Clear all progress")
    reset_parser.add_argument("--yes", action="store_true", help="Confirm the reset")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        return

    cmd_map = {
        "review": cmd_review,
        "stats": cmd_stats,
        "due": cmd_due,
        "add": cmd_add,
        "levels": cmd_levels,
        "export": cmd_export,
        "import": cmd_import,
        "reset": cmd_reset,
    }

    asyncio.run(cmd_map[args.command](args))


if __name__ == "__main__":
    main()
