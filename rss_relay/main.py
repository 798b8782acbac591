"""
Main entry point for RSS Relay.

Runs the async loop that polls feeds, delivers new items, and serves
the bot commands.
"""

import argparse
import asyncio
import logging
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import coloredlogs
import yaml
from telegram.ext import Application

from rss_relay.commands import FeedCommands, build_application
from rss_relay.config import ConfigStore, load_config
from rss_relay.dispatcher import DeliveryDispatcher
from rss_relay.reconcile import reconcile
from rss_relay.rss_parser import FeedParser
from rss_relay.scheduler import PollScheduler
from rss_relay.storage import SeenItemStore
from rss_relay.telegram import DEFAULT_SOURCE_TITLE, TelegramNotifier

logger = logging.getLogger(__name__)


def redact_proxy_url(proxy_url: str) -> str:
    """
    Redact credentials from a proxy URL for safe logging.

    Parameters
    ----------
    proxy_url : str
        The proxy URL potentially containing credentials.

    Returns
    -------
    str
        The proxy URL with password redacted.
    """
    try:
        parsed = urlparse(proxy_url)
        if parsed.password:
            netloc = parsed.hostname or ""
            if parsed.port:
                netloc = f"{netloc}:{parsed.port}"
            if parsed.username:
                netloc = f"{parsed.username}:****@{netloc}"
            return f"{parsed.scheme}://{netloc}{parsed.path}"
        return proxy_url
    except ValueError:
        return "<proxy url>"


@dataclass
class InitialFetchResult:
    """
    Outcome of sending the latest items of a newly added feed.

    Attributes
    ----------
    success : bool
        True if the items were fetched and at least one delivery
        succeeded (or there was nothing new to send).
    count : int
        Number of items delivered.
    error : str | None
        Reason for the failure.
    """

    success: bool
    count: int = 0
    error: str | None = None


class RSSRelay:
    """
    Main RSS relay application.

    Coordinates feed fetching, deduplication, delivery, scheduling and
    bot commands.
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the relay.

        Parameters
        ----------
        config_path : str | Path
            Path to the YAML configuration file.
        """
        self.config = load_config(config_path)
        self.config_store = ConfigStore(
            self.config.storage.config_path,
            default_interval=self.config.polling.default_interval_minutes,
        )
        self.store: SeenItemStore | None = None
        self.parser: FeedParser | None = None
        self.notifier: TelegramNotifier | None = None
        self.dispatcher: DeliveryDispatcher | None = None
        self.scheduler: PollScheduler | None = None
        self.application: Application | None = None
        self._running = False
        self._stopped: asyncio.Event | None = None

    async def start(self) -> None:
        """Start the relay and run until stopped."""
        logger.info("Starting RSS Relay")
        self._stopped = asyncio.Event()
        polling = self.config.polling

        self.store = SeenItemStore.load(
            self.config.storage.cache_path,
            max_items=polling.max_items_per_feed,
        )

        proxy_url = self.config.defaults.proxy
        if proxy_url:
            logger.info("Using proxy: %s", redact_proxy_url(proxy_url))

        self.parser = FeedParser(
            timeout=self.config.defaults.request_timeout,
            max_retries=self.config.defaults.max_retries,
            user_agent=self.config.defaults.user_agent,
            proxy_url=proxy_url,
        )

        self.notifier = TelegramNotifier(self.config.telegram, proxy_url=proxy_url)
        self.dispatcher = DeliveryDispatcher(self.notifier, send_delay=polling.send_delay)

        if not await self.notifier.test_connection():
            logger.error("Failed to connect to Telegram, exiting")
            await self.stop()
            sys.exit(1)

        self._running = True

        self.application = build_application(
            self.config.telegram,
            FeedCommands(self),
            proxy_url=proxy_url,
        )
        await self.application.initialize()
        await self.application.start()
        await self.application.updater.start_polling()

        bot_config = self.config_store.load()
        logger.info(
            "RSS Relay started: %d feed(s), keeping %d item(s) per feed, checking every %d minute(s)",
            len(bot_config.rss_feeds),
            polling.max_items_per_feed,
            bot_config.check_interval_minutes,
        )

        if not self._running:
            # stop() ran while the bot was starting
            return

        self.scheduler = PollScheduler(self.check_all_feeds)
        await self.scheduler.start(bot_config.check_interval_minutes)

        await self._stopped.wait()

    async def stop(self) -> None:
        """Stop the relay gracefully."""
        logger.info("Stopping RSS Relay")
        self._running = False

        if self.scheduler:
            await self.scheduler.stop()
            self.scheduler = None

        if self.application:
            if self.application.updater and self.application.updater.running:
                await self.application.updater.stop()
            if self.application.running:
                await self.application.stop()
            await self.application.shutdown()
            self.application = None

        if self.store:
            self.store.save()
        if self.parser:
            await self.parser.close()
            self.parser = None
        if self.notifier:
            await self.notifier.close()
            self.notifier = None

        if self._stopped:
            self._stopped.set()

        logger.info("RSS Relay stopped")

    def _require_components(self) -> tuple[SeenItemStore, FeedParser, DeliveryDispatcher]:
        if not self.store or not self.parser or not self.dispatcher:
            raise RuntimeError("Components not initialized")
        return self.store, self.parser, self.dispatcher

    async def check_all_feeds(self) -> int:
        """
        Run one poll cycle over every configured feed.

        The bot configuration is re-read at the start of each cycle so
        feed and channel changes apply without rescheduling.

        Returns
        -------
        int
            Number of new items found across all feeds.
        """
        store, _, _ = self._require_components()
        bot_config = self.config_store.load()

        logger.info("Checking %d feed(s)", len(bot_config.rss_feeds))
        if not bot_config.rss_feeds:
            logger.warning("No feeds configured yet. Use /addfeed to add one.")
            return 0

        total = 0
        for feed_url in bot_config.rss_feeds:
            total += await self.check_feed(feed_url, bot_config.feed_channel_id)
            await asyncio.sleep(self.config.polling.feed_delay)

        store.save()
        logger.info("Check complete: %d new item(s)", total)
        return total

    async def check_feed(self, feed_url: str, channel_id: str | None) -> int:
        """
        Check a feed for new items and deliver them.

        Parameters
        ----------
        feed_url : str
            URL of the feed.
        channel_id : str | None
            Destination channel. New items are still recorded as seen
            when no channel is set.

        Returns
        -------
        int
            Number of new items found; 0 if the feed could not be fetched.
        """
        store, parser, dispatcher = self._require_components()

        try:
            document = await parser.fetch_feed(feed_url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Failed to fetch feed %s: %s", feed_url, e)
            return 0

        new_items = reconcile(
            feed_url,
            document.items,
            store,
            max_length=self.config.polling.snippet_max_length,
        )
        if not new_items:
            logger.debug("No new entries in %s", feed_url)
            return 0

        feed_title = document.title or DEFAULT_SOURCE_TITLE
        logger.info(
            "Found %d new entr%s in '%s'",
            len(new_items),
            "y" if len(new_items) == 1 else "ies",
            feed_title,
        )

        if channel_id:
            await dispatcher.deliver_all(channel_id, feed_title, new_items)
        else:
            logger.warning(
                "No feed channel set, %d item(s) from %s recorded without delivery",
                len(new_items),
                feed_url,
            )

        return len(new_items)

    async def send_initial_items(self, feed_url: str) -> InitialFetchResult:
        """
        Deliver the most recent items of a newly added feed.

        Parameters
        ----------
        feed_url : str
            URL of the feed.

        Returns
        -------
        InitialFetchResult
            Number of delivered items, or the reason nothing was sent.
        """
        store, parser, dispatcher = self._require_components()

        bot_config = self.config_store.load()
        if not bot_config.feed_channel_id:
            return InitialFetchResult(
                success=False,
                error="No feed channel set. Use /setchannel first.",
            )

        logger.info("Fetching initial items from %s", feed_url)
        try:
            document = await parser.fetch_feed(feed_url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Failed to fetch initial items from %s: %s", feed_url, e)
            return InitialFetchResult(success=False, error=str(e) or type(e).__name__)

        items = reconcile(
            feed_url,
            document.items,
            store,
            limit=self.config.polling.initial_items_to_send,
            max_length=self.config.polling.snippet_max_length,
        )
        results = await dispatcher.deliver_all(
            bot_config.feed_channel_id,
            document.title or DEFAULT_SOURCE_TITLE,
            items,
        )
        store.save()

        sent = sum(1 for r in results if r.success)
        if results and not sent:
            reason = results[0].reason.value if results[0].reason else "unknown"
            return InitialFetchResult(success=False, error=f"Delivery failed: {reason}")

        return InitialFetchResult(success=True, count=sent)

    def update_interval(self, minutes: int) -> None:
        """
        Apply a new check interval to the running scheduler.

        Parameters
        ----------
        minutes : int
            Minutes between two poll cycles.
        """
        if self.scheduler is None:
            logger.warning("Scheduler not running, interval will apply on next start")
            return
        self.scheduler.reschedule(minutes)


def setup_logging(verbose: bool = False) -> None:
    """
    Configure application logging.

    Parameters
    ----------
    verbose : bool
        If True, set log level to DEBUG.
    """
    level = logging.DEBUG if verbose else logging.INFO

    coloredlogs.install(
        level=level,
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("telegram").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Relay new RSS feed items to a Telegram channel",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)

    config_path = Path(args.config)
    if not config_path.exists():
        logger.error("Configuration file not found: %s", config_path)
        sys.exit(1)

    try:
        relay = RSSRelay(config_path)
    except (ValueError, yaml.YAMLError) as e:
        # pydantic.ValidationError is a ValueError
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    shutdown_tasks: set[asyncio.Task] = set()

    def signal_handler():
        logger.info("Received shutdown signal")
        task = asyncio.create_task(relay.stop())
        shutdown_tasks.add(task)
        task.add_done_callback(shutdown_tasks.discard)

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        loop.run_until_complete(relay.start())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        loop.run_until_complete(relay.stop())
        loop.close()


if __name__ == "__main__":
    main()
