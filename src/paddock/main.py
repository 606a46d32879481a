"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from paddock.config import Settings
from paddock.db.engine import create_engine, init_schema

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: create engine and tables, optionally start the Discord bot."""
    settings: Settings = app.state.settings
    engine = create_engine(settings.database_url)
    await init_schema(engine)
    app.state.engine = engine

    discord_bot = None
    from paddock.discord.bot import is_discord_enabled

    if is_discord_enabled(settings):
        from paddock.discord.bot import start_discord_bot

        discord_bot = await start_discord_bot(settings, engine)
        app.state.discord_bot = discord_bot
        logger.info("discord_bot_integration_started")
    else:
        logger.info("discord_bot_integration_disabled")

    yield

    if discord_bot is not None:
        await discord_bot.close()
        logger.info("discord_bot_integration_stopped")

    await engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the Paddock FastAPI application."""
    settings = settings or Settings()

    logging.basicConfig(
        level=getattr(logging, settings.paddock_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Paddock",
        version="0.1.0",
        description="Race check-ins and live team rosters for Discord racing leagues",
        docs_url="/docs" if settings.paddock_env != "production" else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "env": settings.paddock_env}

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("paddock.main:app", host="0.0.0.0", port=8000)


app = create_app()
