import datetime
import logging
import time
from collections.abc import Callable
from typing import Any

import requests

from config import MAX_DISPATCH_ATTEMPTS, Settings, load_settings
from errors import DispatchFailure
from evaluator import Alert, AlertKind
from models import Recipient
from normalizer import currency_iso, currency_symbol
from providers import get_listing_url
from retries import linear_backoff, retry_call

GREEN = 0x00FF00
RED = 0xFF0000

ALERT_STYLES = {
    AlertKind.BUY: ("↓", GREEN),
    AlertKind.SELL: ("↑", GREEN),
    AlertKind.BUY_BAD: ("↑", RED),
    AlertKind.SELL_BAD: ("↓", RED),
}


def format_price(price: float, currency: str) -> str:
    """Format a price with its currency symbol and thousands separators."""
    symbol = currency_symbol(currency)
    if float(price).is_integer():
        return f"{symbol}{price:,.0f}"
    return f"{symbol}{price:,.2f}"


def build_payload(alert: Alert, currency: str) -> dict[str, Any]:
    """Build a Discord webhook payload for an alert."""
    icon, color = ALERT_STYLES[alert.kind]

    fields = [
        {
            "name": "Current Price",
            "value": format_price(alert.price, currency),
            "inline": True,
        }
    ]

    if alert.kind == AlertKind.BUY:
        fields.append(
            {"name": "Target", "value": f"≤ {format_price(alert.target, currency)}", "inline": True}
        )
    elif alert.kind == AlertKind.SELL:
        fields.append(
            {"name": "Target", "value": f"≥ {format_price(alert.target, currency)}", "inline": True}
        )

    if alert.interest:
        fields.append({"name": "Interest", "value": alert.interest, "inline": True})

    embed: dict[str, Any] = {
        "title": alert.item_key,
        "description": f"{icon} {alert.title}\n{alert.message}",
        "color": color,
        "url": get_listing_url(alert.item_key),
        "fields": fields,
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }

    if alert.image_url:
        embed["thumbnail"] = {"url": alert.image_url}

    return {"content": "Price Alert!", "embeds": [embed]}


class WebhookNotifier:
    """Delivers alerts to a recipient's webhook, retrying failures."""

    def __init__(
        self,
        default_webhook_url: str = "",
        currency: str = "24",
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int = MAX_DISPATCH_ATTEMPTS,
    ):
        self.default_webhook_url = default_webhook_url
        self.currency = currency_iso(currency)
        self.session = session or requests.Session()
        self.sleep = sleep
        self.max_attempts = max_attempts

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "WebhookNotifier":
        return cls(settings.discord_webhook_url, settings.currency, **kwargs)

    def apply_settings(self, settings: Settings) -> None:
        """Follow reloaded webhook and currency settings."""
        self.default_webhook_url = settings.discord_webhook_url
        self.currency = currency_iso(settings.currency)

    def post(self, url: str, payload: dict[str, Any]) -> None:
        r = self.session.post(url, json=payload, timeout=10)
        r.raise_for_status()

    def send(self, recipient: Recipient, alert: Alert) -> None:
        """Deliver an alert, raising DispatchFailure once retries run out."""
        url = recipient.webhook_url or self.default_webhook_url
        payload = build_payload(alert, self.currency)

        if not url:
            icon, _ = ALERT_STYLES[alert.kind]
            logging.info(f"ALERT {icon} {alert.title} - {alert.message}")
            logging.info(f"Steam link: {get_listing_url(alert.item_key)}")
            return

        try:
            retry_call(
                self.post,
                url,
                payload,
                max_attempts=self.max_attempts,
                backoff=linear_backoff,
                sleep=self.sleep,
                description=f"[Notifier] {alert.kind.value} alert for {alert.item_key}",
            )
        except requests.RequestException as e:
            raise DispatchFailure(
                f"Failed to send {alert.kind.value} alert for {alert.item_key} "
                f"to recipient {recipient.id} after {self.max_attempts} attempts: {e}"
            ) from e

        logging.info(f"[Notifier] Sent {alert.kind.value} alert for {alert.item_key}")


def send_test_alert() -> None:
    """Send a sample alert to DISCORD_WEBHOOK_URL."""
    settings = load_settings()
    if not settings.discord_webhook_url:
        logging.error("DISCORD_WEBHOOK_URL not set")
        return

    alert = Alert(
        kind=AlertKind.BUY,
        item_key="AK-47 | Redline (Field-Tested)",
        title="AK-47 | Redline (Field-Tested) dropped below 1800",
        message="Price: 1700 (was 1900)",
        price=1700,
        target=1800,
        previous_price=1900,
        interest="Buy",
    )
    WebhookNotifier.from_settings(settings).send(Recipient(id="test"), alert)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    try:
        send_test_alert()
    except KeyboardInterrupt:
        print("Test alert interrupted")
