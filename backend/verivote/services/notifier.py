"""
Out-of-band voter notification, used when verification does not insist
on the record still being final.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx


logger = logging.getLogger(__name__)


class VoterNotifier(ABC):

    @abstractmethod
    async def ballot_stored(self, voter_id: str, identifier: str, store_tick: int) -> None:
        """Tell the voter a ballot of theirs has been durably stored."""


class LoggingNotifier(VoterNotifier):
    """Records the notification in the application log."""

    async def ballot_stored(self, voter_id: str, identifier: str, store_tick: int) -> None:
        logger.info("Notify voter %s: ballot %s stored at tick %d", voter_id, identifier, store_tick)


class WebhookNotifier(VoterNotifier):
    """Posts the notification to an external messaging gateway."""

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def ballot_stored(self, voter_id: str, identifier: str, store_tick: int) -> None:
        # Storage is already committed; a failed notification is only logged
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json={
                    "voter_id": voter_id,
                    "identifier": identifier,
                    "store_tick": store_tick,
                })
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Notification for voter %s failed: %s", voter_id, e)
