"""
Operator commands for RSS Relay.

Validates and applies configuration changes (feeds, destination channel,
check interval), and exposes them as Telegram bot commands.
"""

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes, filters

from rss_relay.config import MAX_INTERVAL_MINUTES, MIN_INTERVAL_MINUTES, BotConfig, TelegramConfig

if TYPE_CHECKING:
    from rss_relay.main import RSSRelay

logger = logging.getLogger(__name__)

# Numeric chat ID or public @channel username
CHANNEL_ID_PATTERN = re.compile(r"^(-?\d+|@[A-Za-z][A-Za-z0-9_]{3,})$")

HELP_TEXT = (
    "RSS Relay commands:\n"
    "/addfeed <url> - add an RSS/Atom feed\n"
    "/setchannel [chat_id] - send new items to a chat (default: this chat)\n"
    f"/interval <minutes> - check feeds every N minutes ({MIN_INTERVAL_MINUTES}-{MAX_INTERVAL_MINUTES})\n"
    "/feeds - show the current configuration"
)


class CommandError(Exception):
    """Raised when a command is rejected; the message is shown to the operator."""

    pass


@dataclass
class AddedFeed:
    """
    A feed accepted by the add-feed command.

    Attributes
    ----------
    url : str
        Feed URL.
    title : str
        Feed title reported by the feed.
    total_feeds : int
        Number of configured feeds after the addition.
    """

    url: str
    title: str
    total_feeds: int


class FeedCommands:
    """
    Command logic and Telegram handlers.

    Every command reloads the bot configuration from disk before
    changing it and saves it back immediately.
    """

    def __init__(self, relay: "RSSRelay"):
        """
        Initialize the commands.

        Parameters
        ----------
        relay : RSSRelay
            Running application the commands act on.
        """
        self.relay = relay

    async def add_feed(self, url: str) -> AddedFeed:
        """
        Validate a feed URL and add it to the configuration.

        Parameters
        ----------
        url : str
            URL of the feed.

        Returns
        -------
        AddedFeed
            The accepted feed.

        Raises
        ------
        CommandError
            If the URL is malformed, already configured, or does not
            serve a feed.
        """
        url = url.strip()
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise CommandError("Invalid URL: only http(s) feed URLs are supported")

        if url in self.relay.config_store.load().rss_feeds:
            raise CommandError("This feed is already in the list")

        if self.relay.parser is None:
            raise RuntimeError("Components not initialized")

        validation = await self.relay.parser.validate(url)
        if not validation.valid:
            raise CommandError(f"Invalid RSS feed: {validation.error}")

        # Reload: the configuration may have changed during validation
        config = self.relay.config_store.load()
        if url in config.rss_feeds:
            raise CommandError("This feed is already in the list")

        config.rss_feeds.append(url)
        self.relay.config_store.save(config)
        logger.info("Added feed %s (%s)", url, validation.title)

        return AddedFeed(url=url, title=validation.title, total_feeds=len(config.rss_feeds))

    def set_destination(self, channel_id: str) -> str:
        """
        Set the chat that receives new items.

        Parameters
        ----------
        channel_id : str
            Numeric chat ID or @channel username.

        Returns
        -------
        str
            The stored channel ID.

        Raises
        ------
        CommandError
            If the channel ID is malformed.
        """
        channel_id = channel_id.strip()
        if not CHANNEL_ID_PATTERN.match(channel_id):
            raise CommandError(f"Invalid chat ID: {channel_id}")

        config = self.relay.config_store.load()
        config.feed_channel_id = channel_id
        self.relay.config_store.save(config)
        logger.info("Feed channel set to %s", channel_id)
        return channel_id

    def set_interval(self, minutes: str | int) -> int:
        """
        Change the feed check interval and reschedule polling.

        Parameters
        ----------
        minutes : str | int
            New interval in minutes.

        Returns
        -------
        int
            The applied interval.

        Raises
        ------
        CommandError
            If the value is not an integer within the allowed range.
        """
        try:
            value = int(minutes)
        except (TypeError, ValueError):
            raise CommandError(f"Interval must be a whole number of minutes, got {minutes!r}") from None

        if not MIN_INTERVAL_MINUTES <= value <= MAX_INTERVAL_MINUTES:
            raise CommandError(
                f"Interval must be between {MIN_INTERVAL_MINUTES} and {MAX_INTERVAL_MINUTES} minutes"
            )

        config = self.relay.config_store.load()
        config.check_interval_minutes = value
        self.relay.config_store.save(config)
        self.relay.update_interval(value)
        logger.info("Check interval set to %d minute(s)", value)
        return value

    def current_config(self) -> BotConfig:
        """Return the stored bot configuration."""
        return self.relay.config_store.load()

    async def handle_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await update.effective_message.reply_text(HELP_TEXT)

    async def handle_add_feed(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        if not context.args:
            await message.reply_text("Usage: /addfeed <url>")
            return

        try:
            added = await self.add_feed(context.args[0])
        except CommandError as e:
            await message.reply_text(f"Could not add feed. {e}")
            return

        await message.reply_text(
            f"Feed added: {added.title or added.url}\n"
            f"{added.url}\n"
            f"Total feeds: {added.total_feeds}\n\n"
            "Fetching the latest items..."
        )

        result = await self.relay.send_initial_items(added.url)
        if result.success:
            await message.reply_text(
                f"Sent {result.count} latest item(s) to the feed channel. "
                "New items from this feed will be posted automatically."
            )
        else:
            await message.reply_text(
                f"Feed added, but the initial send failed: {result.error or 'unknown'}"
            )

    async def handle_set_channel(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        channel_id = context.args[0] if context.args else str(update.effective_chat.id)

        try:
            stored = self.set_destination(channel_id)
        except CommandError as e:
            await message.reply_text(str(e))
            return

        await message.reply_text(f"Feed channel set to {stored}")

    async def handle_interval(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        if not context.args:
            await message.reply_text("Usage: /interval <minutes>")
            return

        try:
            minutes = self.set_interval(context.args[0])
        except CommandError as e:
            await message.reply_text(str(e))
            return

        await message.reply_text(f"Feeds will be checked every {minutes} minute(s)")

    async def handle_list_feeds(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        config = self.current_config()
        lines = [
            f"Feed channel: {config.feed_channel_id or 'not set'}",
            f"Check interval: {config.check_interval_minutes} minute(s)",
            f"Feeds ({len(config.rss_feeds)}):",
        ]
        lines.extend(f"{i}. {url}" for i, url in enumerate(config.rss_feeds, start=1))
        await update.effective_message.reply_text("\n".join(lines))

    def register(self, application: Application, admin_ids: list[int]) -> None:
        """
        Add the command handlers to a Telegram application.

        Parameters
        ----------
        application : Application
            Application to register the handlers on.
        admin_ids : list[int]
            Users allowed to run commands; empty allows everyone.
        """
        user_filter = filters.User(user_id=admin_ids) if admin_ids else None

        handlers = {
            ("start", "help"): self.handle_help,
            "addfeed": self.handle_add_feed,
            "setchannel": self.handle_set_channel,
            "interval": self.handle_interval,
            "feeds": self.handle_list_feeds,
        }
        for command, callback in handlers.items():
            application.add_handler(CommandHandler(command, callback, filters=user_filter))


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log unexpected command errors and tell the operator something failed."""
    logger.error("Error while handling a command", exc_info=context.error)

    if isinstance(update, Update) and update.effective_message:
        await update.effective_message.reply_text("An error occurred while running the command.")


def build_application(
    config: TelegramConfig,
    commands: FeedCommands,
    proxy_url: str | None = None,
) -> Application:
    """
    Build the Telegram application serving the bot commands.

    Parameters
    ----------
    config : TelegramConfig
        Telegram configuration with the bot token and admin IDs.
    commands : FeedCommands
        Command implementation to register.
    proxy_url : str | None
        Optional proxy URL for the Bot API.

    Returns
    -------
    Application
        Application ready to be initialized and started.
    """
    builder = Application.builder().token(config.bot_token)
    if proxy_url:
        builder = builder.proxy(proxy_url).get_updates_proxy(proxy_url)

    application = builder.build()
    commands.register(application, config.admin_ids)
    application.add_error_handler(on_error)
    return application
