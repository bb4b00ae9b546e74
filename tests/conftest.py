import os
import tempfile
from pathlib import Path

# Point the app at a throwaway database before anything imports backend.config
_DB_DIR = Path(tempfile.mkdtemp(prefix="thai_srs_tests_"))
os.environ["THAI_SRS_DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR / 'test.db'}"

import pytest_asyncio  # noqa: E402

from backend.database import engine  # noqa: E402
from backend.models import Base  # noqa: E402


@pytest_asyncio.fixture
async def fresh_db():
    """Recreate all tables, and release pooled connections afterwards."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()
