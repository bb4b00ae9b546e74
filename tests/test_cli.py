"""Tests for CLI commands."""

import argparse
import json

import pytest

from backend.database import async_session
from backend.storage import load_deck
from thai_srs.__main__ import (
    cmd_add,
    cmd_due,
    cmd_export,
    cmd_import,
    cmd_levels,
    cmd_reset,
    cmd_review,
    cmd_stats,
    ensure_db,
    ensure_learner,
)


@pytest.mark.asyncio
async def test_ensure_db(fresh_db) -> None:
    """Database tables can be created."""
    await ensure_db()


@pytest.mark.asyncio
async def test_ensure_learner(fresh_db) -> None:
    """Default learner is created on first call."""
    await ensure_db()
    learner_id = await ensure_learner()
    assert learner_id >= 1

    # Second call returns same ID
    learner_id2 = await ensure_learner()
    assert learner_id2 == learner_id


@pytest.mark.asyncio
async def test_add_and_due(fresh_db, capsys) -> None:
    await cmd_add(argparse.Namespace(key="ก"))
    assert "Added 'ก'" in capsys.readouterr().out

    await cmd_add(argparse.Namespace(key="ก"))
    assert "already in the deck" in capsys.readouterr().out

    await cmd_due(argparse.Namespace())
    assert "0 items due, 1 new items available" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_stats_and_levels(fresh_db, capsys) -> None:
    await cmd_add(argparse.Namespace(key="ก"))
    capsys.readouterr()

    await cmd_stats(argparse.Namespace())
    out = capsys.readouterr().out
    assert "Total items:" in out
    assert "Day streak:" in out

    await cmd_levels(argparse.Namespace())
    out = capsys.readouterr().out
    assert "[unlocked] Level 1 Beginner" in out
    assert "[ locked ] Level 3 Advanced" in out


@pytest.mark.asyncio
async def test_export_import(fresh_db, capsys, tmp_path) -> None:
    await cmd_add(argparse.Namespace(key="ก"))
    await cmd_add(argparse.Namespace(key="ข"))
    backup = tmp_path / "backup.json"

    await cmd_export(argparse.Namespace(path=str(backup)))
    data = json.loads(backup.read_text(encoding="utf-8"))
    assert set(data["deck"]["items"]) == {"ก", "ข"}

    await cmd_reset(argparse.Namespace(yes=True))
    capsys.readouterr()

    await cmd_import(argparse.Namespace(path=str(backup)))
    assert "Imported 2 items." in capsys.readouterr().out


@pytest.mark.asyncio
async def test_import_invalid_file(fresh_db, tmp_path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("{}", encoding="utf-8")
    with pytest.raises(SystemExit):
        await cmd_import(argparse.Namespace(path=str(bad)))


@pytest.mark.asyncio
async def test_reset_requires_confirmation(capsys) -> None:
    await cmd_reset(argparse.Namespace(yes=False))
    assert "--yes" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_review_cap_is_per_session(fresh_db, capsys, monkeypatch) -> None:
    """--max-reviews limits one session without changing the stored deck."""
    monkeypatch.setattr("builtins.input", lambda prompt="": "k")
    await cmd_review(argparse.Namespace(max_reviews=1))
    out = capsys.readouterr().out
    assert "up to 1 reviews" in out
    assert "Reviewed: 1" in out

    learner_id = await ensure_learner()
    async with async_session() as db:
        deck = await load_deck(db, learner_id)
    assert deck.max_reviews_per_session == 50
    assert deck.items["ก"].total_reviews == 1
