"""
Notification channels.

BotspaceNotifier sends WhatsApp template messages through the Botspace API.
RecordingNotifier keeps messages in memory for tests and dry runs.
MessageTrackingMirror reports each send outcome to the Claimio backend.

Design decisions:
- Channels return a SendReceipt; they never raise on delivery problems
- Both notifiers share the same send() signature so they are interchangeable
- Only RecordingNotifier keeps sent messages; BotspaceNotifier holds no per-send state
- Channel failures can be simulated for testing
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import httpx

from shared.accounts import AccountRegistry

logger = logging.getLogger("notifications")


@dataclass
class SendReceipt:
    """
    Result of a notification send attempt.

    Captures success/failure and metadata for debugging and testing.
    """
    accepted: bool
    account_code: str
    recipient: str
    template_id: str
    variables: list[str]
    media_url: Optional[str] = None
    message_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None

    def __str__(self) -> str:
        status = "✓" if self.accepted else "✗"
        return f"{status} WHATSAPP to {self.recipient}: template {self.template_id} {self.variables}"


def build_message_payload(
    phone: str,
    template_id: str,
    variables: list[str],
    media_url: Optional[str] = None,
    cards: Optional[list[str]] = None,
) -> dict:
    """Botspace template message body."""
    payload = {
        "phone": phone,
        "templateId": template_id,
        "variables": list(variables),
    }
    if cards:
        payload["cards"] = [{"variables": [], "mediaVariable": url} for url in cards]
    if media_url:
        payload["mediaVariable"] = media_url
    return payload


# =============================================================================
# Botspace
# =============================================================================

class BotspaceNotifier:
    """
    WhatsApp template sender backed by the Botspace HTTP API.

    Per-account url, endpoint and key fall back to the global defaults in the
    account registry.
    """

    def __init__(self, accounts: AccountRegistry, http_client: Optional[httpx.Client] = None, timeout: float = 30.0):
        self.accounts = accounts
        self.client = http_client or httpx.Client(timeout=timeout)

    def _endpoint_for(self, account_code: str) -> tuple[Optional[str], Optional[str]]:
        """(url, api_key) for an account, or (None, None) if it is not configured."""
        account = self.accounts.get(account_code)
        if account is None:
            return None, None

        defaults = self.accounts.botspace_defaults
        base_url = (account.botspace.url or defaults.url or "").rstrip("/")
        endpoint = (account.botspace.endpoint or defaults.endpoint or "").lstrip("/")
        api_key = account.botspace.api_key or defaults.api_key
        return f"{base_url}/{endpoint}", api_key

    def send(
        self,
        account_code: str,
        template_id: str,
        phone: str,
        variables: list[str],
        media_url: Optional[str] = None,
        cards: Optional[list[str]] = None,
    ) -> SendReceipt:
        """
        Send a template message.

        Accepted only when the API answers 2xx and data.status is "accepted".
        """
        receipt = SendReceipt(
            accepted=False,
            account_code=account_code,
            recipient=phone,
            template_id=template_id,
            variables=list(variables),
            media_url=media_url,
        )

        url, api_key = self._endpoint_for(account_code)
        if url is None:
            receipt.error = f"Botspace account not configured: {account_code}"
            logger.warning(f"[WHATSAPP FAILED] {receipt.error}")
            return receipt

        headers = {"Content-Type": "application/json"}
        params = {}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
            headers["apiKey"] = api_key
            params["apiKey"] = api_key

        payload = build_message_payload(phone, template_id, variables, media_url, cards)
        logger.info(f"[WHATSAPP] To: {phone} | Account: {account_code} | Template: {template_id}")
        logger.debug(f"[WHATSAPP BODY] {payload}")

        try:
            response = self.client.post(url, params=params, headers=headers, json=payload)
        except httpx.HTTPError as e:
            receipt.error = f"Error calling Botspace API: {e}"
            logger.error(f"[WHATSAPP FAILED] To: {phone} | Account: {account_code} | Error: {receipt.error}")
            return receipt

        if not response.is_success:
            receipt.error = f"Botspace API returned {response.status_code}"
        else:
            try:
                body = response.json()
            except ValueError:
                body = {}
            data = (body.get("data") if isinstance(body, dict) else None) or {}
            status = str(data.get("status") or "")
            if status.lower() == "accepted":
                receipt.accepted = True
                receipt.message_id = data.get("id")
            else:
                receipt.error = f"Botspace did not accept message (status: {status or 'unknown'})"

        if receipt.accepted:
            logger.info(f"[WHATSAPP SENT] To: {phone} | MessageId: {receipt.message_id}")
        else:
            logger.error(f"[WHATSAPP FAILED] To: {phone} | Account: {account_code} | Error: {receipt.error}")

        return receipt

    def close(self):
        self.client.close()


# =============================================================================
# In-memory
# =============================================================================

class RecordingNotifier:
    """
    Mock notifier.

    Logs sends and tracks them for test assertions. Can simulate failures.
    """

    def __init__(self, fail_rate: float = 0.0):
        """
        Args:
            fail_rate: Probability of send failure (0.0 to 1.0), for testing.
        """
        self.fail_rate = fail_rate
        self.sent_messages: list[SendReceipt] = []

    def send(
        self,
        account_code: str,
        template_id: str,
        phone: str,
        variables: list[str],
        media_url: Optional[str] = None,
        cards: Optional[list[str]] = None,
    ) -> SendReceipt:
        accepted = random.random() >= self.fail_rate
        receipt = SendReceipt(
            accepted=accepted,
            account_code=account_code,
            recipient=phone,
            template_id=template_id,
            variables=list(variables),
            media_url=media_url,
            message_id=f"msg-{len(self.sent_messages) + 1}" if accepted else None,
            error=None if accepted else "Simulated delivery failure",
        )
        if accepted:
            logger.info(f"[WHATSAPP] To: {phone} | Template: {template_id} | Variables: {variables}")
        else:
            logger.error(f"[WHATSAPP FAILED] To: {phone} | Error: {receipt.error}")

        self.sent_messages.append(receipt)
        return receipt

    def get_sent_count(self) -> int:
        """Get the number of send attempts (for testing)."""
        return len(self.sent_messages)

    def get_successful_sends(self) -> list[SendReceipt]:
        return [m for m in self.sent_messages if m.accepted]

    def clear_history(self):
        self.sent_messages.clear()

    def find_message_to(self, recipient: str) -> Optional[SendReceipt]:
        """Find a message sent to a specific recipient."""
        for msg in self.sent_messages:
            if msg.recipient == recipient:
                return msg
        return None


# =============================================================================
# Claimio mirror
# =============================================================================

class MessageTrackingMirror:
    """
    Reports notification outcomes to the Claimio backend.

    Best-effort: every failure is logged and swallowed.
    """

    PATH = "/api/orders/message-tracking"

    def __init__(
        self,
        base_url: Optional[str],
        username: Optional[str] = None,
        password: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.auth = (username or "", password or "") if (username or password) else None
        self.client = http_client or httpx.Client(timeout=timeout)

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def record(self, order_id: str, account_code: str, message_status: str) -> bool:
        """POST the outcome. Returns True on a 2xx answer."""
        if not self.enabled:
            logger.debug("Claimio backend URL is not configured, skipping tracking update")
            return False

        body = {"order_id": order_id, "account_code": account_code, "message_status": message_status}
        try:
            response = self.client.post(f"{self.base_url}{self.PATH}", json=body, auth=self.auth)
        except httpx.HTTPError as e:
            logger.error(f"Error sending tracking update for order {order_id}: {e}")
            return False

        if response.is_success:
            logger.info(f"Tracking update sent for order {order_id} (status: {message_status})")
            return True
        logger.warning(f"Tracking update failed for order {order_id}: status {response.status_code}")
        return False

    def close(self):
        self.client.close()
