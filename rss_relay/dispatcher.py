"""
Sequential delivery of new feed items.
"""

import asyncio
import logging
from collections.abc import Sequence

from rss_relay.items import FeedItem
from rss_relay.notifier import DeliveryFailure, DeliveryResult, Notifier

logger = logging.getLogger(__name__)


class DeliveryDispatcher:
    """
    Sends items one at a time through a notifier.

    A fixed pause between messages keeps the bot under the chat
    platform rate limits. Failures are logged and reported, never
    raised, so one bad message does not stop the rest of the batch.
    """

    def __init__(self, notifier: Notifier, send_delay: float = 0.5):
        """
        Initialize the dispatcher.

        Parameters
        ----------
        notifier : Notifier
            Backend used to post messages.
        send_delay : float
            Default seconds to wait between two deliveries.
        """
        self.notifier = notifier
        self.send_delay = send_delay

    async def deliver_all(
        self,
        channel_id: str,
        feed_title: str,
        items: Sequence[FeedItem],
        delay: float | None = None,
    ) -> list[DeliveryResult]:
        """
        Deliver items in order.

        Parameters
        ----------
        channel_id : str
            Destination channel.
        feed_title : str
            Title of the feed the items come from.
        items : Sequence[FeedItem]
            Items to deliver, in delivery order.
        delay : float | None
            Seconds between deliveries; defaults to ``send_delay``.

        Returns
        -------
        list[DeliveryResult]
            One result per item, in the same order.
        """
        pause = self.send_delay if delay is None else delay
        results: list[DeliveryResult] = []

        for index, item in enumerate(items):
            if index and pause > 0:
                await asyncio.sleep(pause)

            try:
                result = await self.notifier.send_item(channel_id, item, feed_title)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Failed to deliver '%s': %s", item.title[:50], e)
                result = DeliveryResult.failed(item, DeliveryFailure.TRANSPORT_ERROR, str(e))

            if not result.success:
                logger.warning(
                    "Item '%s' not delivered (%s)",
                    item.title[:50],
                    result.reason.value if result.reason else "unknown",
                )
            results.append(result)

        return results
