"""
Marketing email capture.

After a confirmed purchase the host may ask the buyer for an email address.
Submissions go to a webhook and are fire-and-forget: a failed submission is
logged and never affects the purchase outcome.

Environment Variables:
    - PRESALE_WEBHOOK_URL: Webhook endpoint; capture is disabled when unset
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

import httpx

from ..chains.constants import get_webhook_url_from_env

logger = logging.getLogger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_PATTERN.match(email.strip()))


class EmailCaptureClient(httpx.AsyncClient):
    """
    Posts ``{email, wallet, purchase_type, timestamp}`` to the capture webhook.

    Usage:
        ```python
        async with EmailCaptureClient() as capture:
            await capture.submit("buyer@example.com", wallet="0xAbc...", purchase_type="ETH")
        ```
    """

    def __init__(self, webhook_url: Optional[str] = None, **kwargs):
        kwargs.setdefault("timeout", 10.0)
        super().__init__(**kwargs)
        self.webhook_url = webhook_url or get_webhook_url_from_env()

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def submit(self, email: str, wallet: str, purchase_type: str) -> bool:
        """
        Submit one capture.

        Returns:
            bool: True if the webhook accepted it. Invalid emails, a missing
            webhook and delivery failures all return False.
        """
        if not self.enabled:
            logger.debug("Email capture disabled, no webhook configured")
            return False
        if not is_valid_email(email):
            logger.info("Rejected malformed email for %s", wallet)
            return False

        payload = {
            "email": email.strip(),
            "wallet": wallet,
            "purchase_type": purchase_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            response = await self.post(self.webhook_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Email capture for %s failed: %s", wallet, e)
            return False
        return True
