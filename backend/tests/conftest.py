# Ensure backend is at sys.path[0] when pytest runs (from repo root or from backend dir)
import asyncio
import sys
from pathlib import Path

_tests_dir = Path(__file__).resolve().parent
_backend = _tests_dir.parent
_str_backend = str(_backend)
if sys.path[0:1] != [_str_backend]:
    sys.path.insert(0, _str_backend)
if str(_tests_dir) not in sys.path:
    sys.path.append(str(_tests_dir))

import pytest

from core.database import dispose_database, get_database_manager, init_database


@pytest.fixture
def test_db():
    """Fresh in-memory schema per test, set up through the DatabaseManager singleton."""

    async def _setup():
        await init_database("sqlite+aiosqlite:///:memory:")
        await get_database_manager().create_schema()

    async def _teardown():
        await dispose_database()

    asyncio.run(_setup())
    yield
    asyncio.run(_teardown())
