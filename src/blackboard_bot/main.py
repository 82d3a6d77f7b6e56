"""
Service entry point for Blackboard Session Bot.

Runs the long-lived service:
1. Load settings and configure logging
2. Recover every stored session from the session store
3. Keep sessions alive and fire alerts until interrupted
4. Close every client on shutdown
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

from blackboard_bot.config import Settings, get_settings, setup_logging
from blackboard_bot.db import create_store
from blackboard_bot.notify import TelegramNotifier
from blackboard_bot.registry import ClientRegistry

logger = logging.getLogger(__name__)


class BlackboardService:
    """
    Owns the registry and the delivery bridge for one process.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.registry = ClientRegistry(settings, store=create_store(settings))
        self.notifier: Optional[TelegramNotifier] = None

        if settings.telegram_bot_token:
            self.notifier = TelegramNotifier(settings=settings)
            self.notifier.attach(self.registry)
        else:
            logger.warning("TELEGRAM_BOT_TOKEN not set, alerts will not be delivered")

        self._stop = asyncio.Event()

    def stop(self) -> None:
        self._stop.set()

    async def run(self) -> None:
        logger.info("=" * 50)
        logger.info("Starting Blackboard Session Bot")
        logger.info("=" * 50)

        try:
            recovered = await self.registry.recover()
            logger.info(f"{recovered} active session(s), waiting for alerts")
            await self._stop.wait()
        finally:
            logger.info("Shutting down")
            await self.registry.shutdown()
            if self.notifier is not None:
                await self.notifier.aclose()


async def serve(settings: Settings) -> None:
    service = BlackboardService(settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, service.stop)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still raises
            pass

    await service.run()


def main() -> int:
    """
    Entry point for the Blackboard Session Bot.

    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    # Setup logging
    setup_logging()

    try:
        # Validate configuration early
        settings = get_settings()
        logger.debug(f"Loaded configuration for {settings.blackboard_base_url}")
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        print("Please check your environment variables.", file=sys.stderr)
        return 1

    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.error(f"Service failed with error: {e}", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
