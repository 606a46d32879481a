"""Shared test fixtures."""

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from paddock.config import Settings
from paddock.db.engine import create_engine, init_schema
from paddock.models.checkin import Event


@pytest.fixture
def settings() -> Settings:
    """Test settings with defaults."""
    return Settings(
        paddock_env="development",
        database_url="sqlite+aiosqlite:///:memory:",
        paddock_reorder_delay_seconds=0,
    )


@pytest.fixture
async def engine() -> AsyncEngine:
    """Create an in-memory SQLite engine with all tables."""
    eng = create_engine("sqlite+aiosqlite:///:memory:")
    await init_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def make_event():
    """Factory for check-in events with sensible defaults."""

    def _make(**overrides: object) -> Event:
        fields: dict[str, object] = {
            "unique_id": str(uuid.uuid4()),
            "server_name": "Apex League",
            "season": 3,
            "round": 7,
            "channel_ids": ["1001"],
            "date_time": "2025-03-16 7:30 PM",
            "timezone": "America/Chicago",
            "roles": ["555"],
            "track_name": "Monza",
            "track_image": "Italy_Circuit.png",
        }
        fields.update(overrides)
        return Event(**fields)

    return _make
