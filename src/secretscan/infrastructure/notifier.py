"""Webhook notifier for scan results."""

import logging
from typing import Optional

import httpx

from secretscan.core.errors import NotificationError
from secretscan.scanner.models import ScanResult

logger = logging.getLogger(__name__)


def build_summary(result: ScanResult, target: str) -> str:
    """Format the short text posted to the webhook."""
    if not result.has_matches:
        return f"No secrets found in {target}"

    rule_ids = sorted({match.rule_id for match in result.matches})
    files = {match.path for match in result.matches}
    summary = (
        f"Secrets found in {target}: {len(result.matches)} match(es) "
        f"in {len(files)} file(s) (rules: {', '.join(rule_ids)})"
    )
    if result.error_count:
        summary += f"; {result.error_count} file(s) could not be read"
    return summary


class WebhookNotifier:
    """
    Posts a ``{"content": ...}`` message to a webhook (Discord-compatible).

    Delivery is attempted once. Failures are surfaced as NotificationError
    and never retried.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the notifier.

        Args:
            webhook_url: Endpoint receiving the message
            timeout: Request timeout in seconds
            client: Optional pre-configured HTTP client (e.g. for tests)
        """
        if not webhook_url:
            raise ValueError("webhook_url must not be empty")

        self._webhook_url = webhook_url
        self._timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def send(self, content: str) -> None:
        """
        Post a message to the webhook.

        Raises:
            NotificationError: On transport errors or a non-2xx status
        """
        client = await self._get_client()
        try:
            response = await client.post(self._webhook_url, json={"content": content})
        except httpx.HTTPError as e:
            raise NotificationError(f"Failed to send notification: {e}") from e

        if not response.is_success:
            raise NotificationError(
                f"Failed to send notification: status={response.status_code}",
                status_code=response.status_code,
            )

        logger.debug(f"Notification delivered (status={response.status_code})")
