"""Alert formatting and webhook delivery for hostwatch."""

import json
import logging
from typing import Any

import requests

from hostwatch.models import Metrics

logger = logging.getLogger(__name__)

ALERT_TITLE = "Top CPU Consuming Processes"
ALERT_EXPLANATION = "Please consider cleaning up or reviewing the following processes."
DEFAULT_TIMEOUT = 10.0


def section(text: str) -> dict[str, Any]:
    """Build a markdown section block."""
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def divider() -> dict[str, Any]:
    return {"type": "divider"}


def build_alert_payload(metrics: Metrics, cluster_id: str) -> dict[str, Any]:
    """
    Build the block message for a CPU alert.

    Only the process ranking is rendered; the host-wide CPU, memory and
    disk figures are not part of the message body.
    """
    blocks = [
        section(f"*🚨 [{cluster_id}] {ALERT_TITLE} 🚨*"),
        divider(),
        section(ALERT_EXPLANATION),
        divider(),
    ]
    for rank, proc in enumerate(metrics.processes, start=1):
        blocks.append(
            section(
                f"*{rank}.* `{proc.name}` CPU - *{proc.cpu_percent:.2f}%* "
                f"| Memory - *{proc.memory_percent:.2f}%*"
            )
        )
    return {"blocks": blocks}


def encode_payload(payload: dict[str, Any]) -> bytes:
    """Serialize a payload to the exact bytes sent over the wire."""
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


class WebhookNotifier:
    """
    Posts block messages to an incoming-webhook URL.

    Delivery failures (timeouts, connection errors, non-2xx responses) are
    logged and reported through the return value, never raised.
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """
        Initialize the WebhookNotifier.

        Args:
            url: Webhook destination.
            timeout: Request timeout in seconds.
            session: Optional session to reuse; one is created when omitted.
        """
        self._url = url
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def timeout(self) -> float:
        return self._timeout

    def send(self, payload: dict[str, Any]) -> bool:
        """POST a payload. Returns True when the webhook accepted it."""
        body = encode_payload(payload)
        try:
            response = self._session.post(
                self._url,
                data=body,
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.exceptions.Timeout:
            logger.error("Webhook request timed out after %ss", self._timeout)
            return False
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            logger.error("Webhook rejected alert with HTTP %s", status)
            return False
        except requests.exceptions.RequestException as e:
            logger.error("Webhook request failed: %s", e)
            return False

        logger.info("Alert delivered (%s)", response.status_code)
        return True

    def notify(self, metrics: Metrics, cluster_id: str) -> bool:
        """Format an alert for ``metrics`` and deliver it."""
        return self.send(build_alert_payload(metrics, cluster_id))

    def close(self) -> None:
        self._session.close()
