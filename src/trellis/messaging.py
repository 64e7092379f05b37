"""Work-log messages posted to the team chat."""

import logging
from typing import Any, Optional

import httpx

from trellis.errors import MessagingError

logger = logging.getLogger(__name__)


class Messenger:
    """Post messages to a chat webhook.

    Posting is a no-op in quiet mode. Without a webhook the message is only logged.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        quiet: bool = False,
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self.webhook_url = webhook_url
        self.quiet = quiet
        self._client = client or httpx.Client(timeout=timeout)

    def post(self, text: str, url: Optional[str] = None, message_type: Optional[str] = None) -> bool:
        """Post a message. Returns True if it was delivered.

        Raises:
            MessagingError: If the webhook responds with a non-2xx status
        """
        if self.quiet:
            logger.debug("Quiet mode, not posting: %s", text)
            return False
        if not self.webhook_url:
            logger.warning("No webhook configured (trellis.webhook), message not posted")
            logger.info("%s", text)
            return False

        payload: dict[str, Any] = {"text": text}
        if url is not None:
            payload["url"] = url
        if message_type is not None:
            payload["message_type"] = message_type

        try:
            response = self._client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as err:
            raise MessagingError(f"Failed to post message: {err}") from err
        if not response.is_success:
            raise MessagingError(f"Failed to post message: HTTP {response.status_code} - {response.text}")
        logger.debug("Posted message (%s)", response.status_code)
        return True

    def close(self) -> None:
        self._client.close()
