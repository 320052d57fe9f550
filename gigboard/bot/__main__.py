"""
gigboard.bot.__main__ — Entry point for ``python -m gigboard.bot``
==================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Attach the debug-channel log mirror.
5. Create the GigBoardBot and hand it config + engine.
6. Start the bot (blocking — runs the asyncio event loop).

Run with::

    python -m gigboard.bot
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from gigboard.bot.core import GigBoardBot
from gigboard.config import load_config
from gigboard.database.engine import create_db_engine, init_db
from gigboard.services.diagnostics import DebugChannelHandler

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("gigboard")


def main() -> None:
    """Bootstrap and run the GigBoard bot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    # 2. Soft configuration.
    cfg = load_config()
    logger.info("Config loaded — Community: %s", cfg.community_name)

    # 3. Database.  Failing here is fatal.
    try:
        engine = create_db_engine()
        init_db(engine)
    except Exception:
        logger.critical("Database initialization failed", exc_info=True)
        sys.exit(1)

    # 4. Mirror WARNING+ records into the debug channels.
    debug_handler = DebugChannelHandler()
    debug_handler.setFormatter(logging.Formatter("%(name)s │ %(message)s"))
    logging.getLogger().addHandler(debug_handler)

    # 5. Bot.
    bot = GigBoardBot(cfg=cfg, engine=engine, debug_handler=debug_handler)

    # 6. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting GigBoard bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
