"""
IIROSE Room Plugins - Main Entry Point

Discord bot hosting the room plugins:
- /iirose cut, /iirose allcut
- Welcome / farewell / refresh messages with per-user cooldown
- Word triggers on member join / move / leave
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Optional, Any, Dict

import structlog

from config import Config, load_config, validate_config
from discord_bot import DiscordBot
from health import HealthCheckServer
from utils.rate_limiting import CooldownTracker
from welcome_store import YamlWelcomeStore
from word_trigger import WordDriver

logger = structlog.get_logger()


def setup_logging(log_level: str, log_format: str) -> None:
    """
    Configure structured logging.

    Args:
        log_level: Logging level (debug, info, warning, error, critical)
        log_format: Output format ("json" or "console")
    """
    level_map: dict[str, int] = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
        "critical": logging.CRITICAL,
    }

    min_level = level_map.get(log_level.lower(), logging.INFO)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logger.info("logging_configured", level=log_level, format=log_format)


class Application:
    """Main application orchestrator."""

    def __init__(self) -> None:
        """Initialize application components."""
        self.config: Optional[Config] = None
        self.health_server: Optional[HealthCheckServer] = None
        self.bot: Optional[DiscordBot] = None
        self.tracker: Optional[CooldownTracker] = None
        self.welcome_store: Optional[YamlWelcomeStore] = None
        self.word_driver: Optional[WordDriver] = None
        self.shutdown_event: asyncio.Event = asyncio.Event()

    async def setup(self) -> None:
        """Load configuration and initialize core components."""
        logger.info("application_starting")

        try:
            self.config = load_config()
            if not validate_config(self.config):
                raise ValueError("Configuration validation failed")
        except Exception as e:
            logger.error("config_load_failed", error=str(e))
            raise

        setup_logging(self.config.log_level, self.config.log_format)

        self.welcome_store = YamlWelcomeStore(self.config.welcome_store_path)

        if self.config.event_triggers_enabled:
            self.word_driver = WordDriver.from_file(self.config.word_triggers_file)
            logger.info(
                "word_driver_initialized",
                path=str(self.config.word_triggers_file),
                trigger_count=len(self.word_driver),
            )

        self.tracker = CooldownTracker(self.config.welcome.cooldown)

        self.health_server = HealthCheckServer(
            host=self.config.health_check_host,
            port=self.config.health_check_port,
            status_provider=self.health_status,
        )

        logger.info(
            "application_configured",
            health_port=self.config.health_check_port,
            cooldown=self.config.welcome.cooldown,
        )

    def health_status(self) -> Dict[str, Any]:
        return {
            "discord_connected": bool(self.bot and self.bot.is_connected),
            "active_cooldowns": self.tracker.active_count if self.tracker else 0,
        }

    async def start(self) -> None:
        """Start all application components."""
        logger.info("application_starting_components")
        assert self.config is not None, "Config not loaded"
        assert self.health_server is not None, "Health server not initialized"

        await self.health_server.start()

        self.bot = DiscordBot(
            token=self.config.discord_bot_token,
            config=self.config,
            welcome_store=self.welcome_store,
            word_driver=self.word_driver,
            tracker=self.tracker,
        )
        await self.bot.connect_bot()

        logger.info("application_running")

    async def stop(self) -> None:
        """Gracefully stop all components."""
        logger.info("application_stopping")

        if self.bot is not None:
            try:
                await self.bot.disconnect_bot()
            except Exception as e:
                logger.error("discord_disconnect_failed", error=str(e))
            logger.debug("discord_disconnected")

        # Cancel pending cooldown cleanups exactly once
        if self.tracker is not None:
            self.tracker.dispose()
            self.tracker = None
            logger.debug("cooldown_tracker_disposed")

        if self.health_server is not None:
            try:
                await self.health_server.stop()
            except Exception as e:
                logger.error("health_server_stop_failed", error=str(e))
            logger.debug("health_server_stopped")

        logger.info("application_stopped")

    async def run(self) -> None:
        """Main application run loop."""
        try:
            await self.setup()
            await self.start()
            await self.shutdown_event.wait()
        except KeyboardInterrupt:
            logger.info("received_keyboard_interrupt")
        except Exception as e:
            logger.error("application_error", error=str(e), exc_info=True)
            raise
        finally:
            await self.stop()


async def main() -> None:
    """Main async entry point."""
    app = Application()

    def _signal_handler(signum: int, frame: Any) -> None:
        logger.info("received_signal", signal=signal.Signals(signum).name)
        app.shutdown_event.set()

    # Not available on every platform / thread
    try:
        signal.signal(signal.SIGINT, _signal_handler)
        signal.signal(signal.SIGTERM, _signal_handler)
    except ValueError:
        pass

    try:
        await app.run()
    except Exception as e:
        logger.error("fatal_error", error=str(e), exc_info=True)
        sys.exit(1)


def cli() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown complete.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
