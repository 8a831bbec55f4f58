"""
Completion notifications.

Posts a one-line message to an HTTP endpoint. Delivery is best-effort:
errors are logged and never reach the caller, and nothing is retried.
"""

import logging
from typing import Optional

import requests


logger = logging.getLogger(__name__)


class Notifier:
    """
    Sends run outcome messages as a form-encoded POST body.
    """

    CONTENT_TYPE = 'application/x-www-form-urlencoded'

    def __init__(self, url: Optional[str], verify_tls: bool = True, timeout: float = 10.0):
        """
        Initialize notifier.

        Args:
            url: Endpoint to POST to; None disables notifications
            verify_tls: Verify the endpoint's TLS certificate. Only disable
                for endpoints with self-signed certificates you control.
            timeout: Seconds to wait for the endpoint
        """
        self.url = url
        self.verify_tls = verify_tls
        self.timeout = timeout

        if url and not verify_tls:
            logger.warning(f"TLS certificate verification disabled for notifications to {url}")

    def send(self, message: str) -> bool:
        """
        Send a notification message.

        Any HTTP status counts as delivered; only request errors do not.

        Args:
            message: Raw text body

        Returns:
            True if the request was sent, False otherwise
        """
        if not self.url:
            logger.info(f"Notification URL not configured, skipping: {message}")
            return False

        try:
            response = requests.post(
                self.url,
                data=message.encode('utf-8'),
                headers={'Content-Type': self.CONTENT_TYPE},
                verify=self.verify_tls,
                timeout=self.timeout
            )
            response.close()
        except requests.RequestException as e:
            logger.error(f"Failed to send notification: {e}")
            return False

        logger.info(f"Notification sent (status {response.status_code}): {message}")
        return True
