#!/usr/bin/env python3
"""
Voice Curfew Bot - Single Command Startup
Run with: python start.py
Runs both the Flask liveness server AND the Discord bot concurrently
"""

import sys
import asyncio
import logging
import threading

import bot
from backend import run_backend

logger = logging.getLogger(__name__)


def run_flask_app():
    """Run Flask in a separate thread"""
    flask_config = bot.config.get_flask_config()
    try:
        run_backend(flask_config['host'], flask_config['port'])
    except Exception as e:
        logger.exception(f"[Flask] Error starting Flask app: {e}")


async def main():
    """Main function to run both bot and Flask concurrently"""
    flask_thread = threading.Thread(target=run_flask_app, daemon=True)
    flask_thread.start()
    logger.info("[Flask] Web server thread started")

    await bot.run_bot()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("[Shutdown] Graceful shutdown complete")
        sys.exit(0)
    except ValueError as e:
        logger.error(f"[Startup] {e}")
        sys.exit(1)
