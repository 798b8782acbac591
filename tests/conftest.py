"""
Shared fixtures for RSS Relay tests.

Provides common test fixtures for use across all test modules.
"""

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from rss_relay.config import AppConfig, ConfigStore, TelegramConfig
from rss_relay.items import FeedDocument, FeedItem, RawItem
from rss_relay.notifier import DeliveryResult
from rss_relay.storage import SeenItemStore


# Path to test fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def sample_rss_content(fixtures_dir: Path) -> str:
    """Return contents of sample RSS feed."""
    return (fixtures_dir / "sample_rss.xml").read_text()


@pytest.fixture
def sample_atom_content(fixtures_dir: Path) -> str:
    """Return contents of sample Atom feed."""
    return (fixtures_dir / "sample_atom.xml").read_text()


@pytest.fixture
def sample_config_path(fixtures_dir: Path) -> Path:
    """Return path to sample config file."""
    return fixtures_dir / "sample_config.yaml"


@pytest.fixture
def sample_item() -> FeedItem:
    """Create a sample normalized item."""
    return FeedItem(
        title="Test Entry Title",
        link="https://example.com/test-entry",
        content_snippet="This is the test entry snippet.",
    )


@pytest.fixture
def make_raw_items():
    """Return a factory building raw items whose title is the upper-cased link."""

    def factory(*links: str) -> list[RawItem]:
        return [
            RawItem(title=link.upper(), link=link, content_snippet=f"About {link}")
            for link in links
        ]

    return factory


@pytest.fixture
def store(tmp_path: Path) -> SeenItemStore:
    """Create an empty store backed by a temporary file."""
    return SeenItemStore(tmp_path / "cache.json", max_items=10)


@pytest.fixture
def minimal_telegram_config() -> TelegramConfig:
    """Create a minimal valid Telegram configuration."""
    return TelegramConfig(bot_token="1234567890:ABCdefGHIjklMNOpqrsTUVwxyz")


@pytest.fixture
def minimal_config_dict() -> dict[str, Any]:
    """
    Create a minimal valid configuration dictionary.

    Returns
    -------
    dict
        Configuration dictionary that can be used to create AppConfig.
    """
    return {
        "telegram": {
            "bot_token": "1234567890:ABCdefGHIjklMNOpqrsTUVwxyz",
        },
    }


@pytest.fixture
def minimal_app_config(minimal_telegram_config: TelegramConfig) -> AppConfig:
    """Create a minimal valid app configuration."""
    return AppConfig(telegram=minimal_telegram_config)


@pytest.fixture
def app_config_path(tmp_path: Path) -> Path:
    """
    Write a complete configuration file using temporary storage paths.

    Returns
    -------
    Path
        Path to the YAML configuration file.
    """
    config = {
        "telegram": {"bot_token": "1234567890:ABCdefGHIjklMNOpqrsTUVwxyz"},
        "polling": {"send_delay": 0, "feed_delay": 0},
        "storage": {
            "cache_path": str(tmp_path / "data" / "rss-cache.json"),
            "config_path": str(tmp_path / "data" / "config.json"),
        },
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config))
    return path


@pytest.fixture
def config_store(tmp_path: Path) -> ConfigStore:
    """Create a config store backed by a temporary file."""
    return ConfigStore(tmp_path / "config.json")


@pytest.fixture
def mock_notifier() -> MagicMock:
    """
    Create a mock notifier that accepts every message.

    Returns
    -------
    MagicMock
        A notifier whose send_item reports success.
    """
    notifier = MagicMock()
    notifier.send_item = AsyncMock(
        side_effect=lambda channel_id, item, source_title: DeliveryResult.ok(item)
    )
    notifier.test_connection = AsyncMock(return_value=True)
    notifier.close = AsyncMock()
    return notifier


@pytest.fixture
def mock_parser() -> MagicMock:
    """
    Create a mock feed parser returning an empty feed.

    Returns
    -------
    MagicMock
        A parser whose fetch_feed returns an empty document.
    """
    parser = MagicMock()
    parser.fetch_feed = AsyncMock(return_value=FeedDocument(title="Empty"))
    parser.close = AsyncMock()
    return parser


@pytest.fixture
def mock_telegram_bot() -> MagicMock:
    """
    Create a mock Telegram bot.

    Returns
    -------
    MagicMock
        A mock Bot instance with common methods mocked.
    """
    bot = MagicMock()
    bot.send_message = AsyncMock()
    bot.get_me = AsyncMock(return_value=MagicMock(username="test_bot"))
    bot.shutdown = AsyncMock()
    return bot


@pytest.fixture
def feedparser_entry() -> dict[str, Any]:
    """
    Create a sample feedparser entry dictionary.

    Returns
    -------
    dict
        A dictionary mimicking feedparser entry structure.
    """
    return {
        "title": "Test Entry",
        "link": "https://example.com/entry",
        "id": "https://example.com/entry",
        "summary": "This is a test summary",
        "content": [{"value": "<p>This is the full content</p>"}],
    }
