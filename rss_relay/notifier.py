"""
Protocol definition for notification backends.

Defines the common interface that all notifiers must implement, and
the result type they report for each delivery.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from rss_relay.items import FeedItem


class DeliveryFailure(str, Enum):
    """Reasons a message could not be delivered."""

    CHANNEL_NOT_FOUND = "channel not found"
    CHANNEL_NOT_POSTABLE = "channel not postable"
    TRANSPORT_ERROR = "transport error"


@dataclass
class DeliveryResult:
    """
    Outcome of delivering one item.

    Attributes
    ----------
    link : str
        Link of the delivered item.
    success : bool
        True if the message was posted.
    reason : DeliveryFailure | None
        Failure category when not successful.
    detail : str
        Error message from the transport, if any.
    """

    link: str
    success: bool
    reason: DeliveryFailure | None = None
    detail: str = ""

    @classmethod
    def ok(cls, item: FeedItem) -> "DeliveryResult":
        return cls(link=item.link, success=True)

    @classmethod
    def failed(cls, item: FeedItem, reason: DeliveryFailure, detail: str = "") -> "DeliveryResult":
        return cls(link=item.link, success=False, reason=reason, detail=detail)


@runtime_checkable
class Notifier(Protocol):
    """
    Protocol defining the interface for notification backends.

    The @runtime_checkable decorator allows using isinstance() checks
    against this protocol for structural typing validation.
    """

    async def test_connection(self) -> bool:
        """
        Test the connection to the notification backend.

        Returns
        -------
        bool
            True if the connection is working and messages can be sent.
        """
        ...

    async def send_item(
        self,
        channel_id: str,
        item: FeedItem,
        source_title: str,
    ) -> DeliveryResult:
        """
        Post a feed item to a channel.

        Parameters
        ----------
        channel_id : str
            Destination channel.
        item : FeedItem
            The item to send.
        source_title : str
            Title of the feed the item comes from.

        Returns
        -------
        DeliveryResult
            Outcome of the delivery; transport errors are reported here,
            not raised.
        """
        ...

    async def close(self) -> None:
        """
        Close the notifier and release any resources.
        """
        ...
