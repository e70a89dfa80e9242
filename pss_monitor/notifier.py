"""Discord webhook notifier.

Alerts are built as plain :class:`Alert` values and rendered into a single
Discord embed on delivery. Delivery is best effort: failures are logged and
never reach the caller.
"""
from __future__ import annotations

import datetime as _dt
import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from . import config
from .live_config import LiveSettings
from .models import ProductDescriptor
from .utils import get_webhook_session, retryable_request

logger = logging.getLogger(__name__)

FOOTER_TEXT = "PrivateSportShop Stock Monitor"


class Severity(enum.Enum):
    INFO = 0x3498DB
    SUCCESS = 0x00AA00
    WARNING = 0xFFA500
    ERROR = 0xFF0000


@dataclass(frozen=True)
class AlertField:
    name: str
    value: str
    inline: bool = True


@dataclass
class Alert:
    title: str
    description: str = ""
    fields: List[AlertField] = field(default_factory=list)
    severity: Severity = Severity.INFO
    url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    footer: Optional[str] = FOOTER_TEXT


@retryable_request
def _post(session: requests.Session, url: str, **kwargs) -> requests.Response:
    return session.post(url, **kwargs)


def _build_embed(alert: Alert) -> dict:
    embed = {
        "title": alert.title,
        "description": alert.description,
        "color": alert.severity.value,
        "fields": [{"name": f.name, "value": f.value, "inline": f.inline} for f in alert.fields],
        "timestamp": _dt.datetime.now(_dt.timezone.utc).isoformat(),
    }
    if alert.url:
        embed["url"] = alert.url
    if alert.thumbnail_url:
        embed["thumbnail"] = {"url": alert.thumbnail_url}
    if alert.footer:
        embed["footer"] = {"text": alert.footer}
    return embed


def build_stock_alert(
    descriptor: ProductDescriptor,
    size_label: str,
    quantity: int,
    product_url: str,
    checkout_url: str = config.CHECKOUT_URL,
) -> Alert:
    fields = [
        AlertField("Size", size_label),
        AlertField("Quantity", str(quantity)),
        AlertField("Price", descriptor.price or "N/A"),
    ]
    if descriptor.discount:
        fields.append(AlertField("Discount", descriptor.discount))
    fields.append(AlertField("Product", f"[View product]({product_url})"))
    fields.append(AlertField("Cart", f"[Go to cart]({checkout_url})"))

    return Alert(
        title=f"Stock Alert: {descriptor.brand}",
        description=(
            f"**{descriptor.title}**\n"
            f"Added to cart, held for about {config.CART_RESERVATION_MINUTES} minutes."
        ),
        fields=fields,
        severity=Severity.SUCCESS,
        url=product_url,
        thumbnail_url=descriptor.image_url,
    )


def build_token_expired_alert(error_message: str) -> Alert:
    return Alert(
        title="Token Expired - Action Required",
        description="The authentication token has expired. Please update the credentials.",
        fields=[AlertField("Error", (error_message or "")[:200], inline=False)],
        severity=Severity.ERROR,
        footer=None,
    )


class DiscordNotifier:
    def __init__(
        self,
        settings: LiveSettings,
        session: Optional[requests.Session] = None,
        username: str = config.DISCORD_USERNAME,
    ) -> None:
        self.settings = settings
        self.session = session
        self.username = username

    def send(self, alert: Alert) -> bool:
        """Deliver ``alert``; returns False when it was skipped or failed."""
        webhook_url = self.settings.snapshot().webhook_url
        if not webhook_url:
            logger.info("Discord webhook not configured, skipping notification: %s", alert.title)
            return False

        session = self.session
        close_session = False
        if session is None:
            session = get_webhook_session()
            close_session = True

        payload = {"username": self.username, "embeds": [_build_embed(alert)]}
        try:
            logger.info("Sending Discord notification: %s", alert.title)
            _post(session, webhook_url, json=payload, timeout=config.REQUEST_TIMEOUT_SECONDS)
            return True
        except Exception:
            logger.exception("Failed to deliver Discord notification: %s", alert.title)
            return False
        finally:
            if close_session:
                session.close()


__all__ = [
    "Severity",
    "AlertField",
    "Alert",
    "DiscordNotifier",
    "build_stock_alert",
    "build_token_expired_alert",
]
