"""Runtime-replaceable credentials and notification target.

One :class:`LiveSettings` instance is created at start-up and handed to the
API client and the notifier. The control server rewrites it in place, so a
new cookie or token takes effect on the next request without a restart.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    basic_auth: str = ""
    cookies: str = ""
    webhook_url: str = ""


def parse_header_block(headers: Optional[str]) -> Tuple[str, str]:
    """Extract the basic-auth token and cookie string from raw request headers.

    ``headers`` is a block of ``Name: value`` lines as copied from a proxy or
    the browser dev tools. Only ``Authorization: Basic ...`` and ``Cookie:``
    are picked up; header names are matched case-insensitively.
    """
    basic_auth = ""
    cookies = ""
    if not headers:
        return basic_auth, cookies

    for line in headers.splitlines():
        trimmed = line.strip()
        lowered = trimmed.lower()
        if lowered.startswith("authorization:"):
            value = trimmed[len("authorization:"):].strip()
            if value.lower().startswith("basic "):
                basic_auth = value[len("basic "):].strip()
        elif lowered.startswith("cookie:"):
            cookies = trimmed[len("cookie:"):].strip()
    return basic_auth, cookies


class LiveSettings:
    def __init__(self, basic_auth: str = "", cookies: str = "", webhook_url: str = "") -> None:
        self._lock = threading.Lock()
        self._credentials = Credentials(basic_auth=basic_auth, cookies=cookies, webhook_url=webhook_url)
        self._token_alert_sent = False

    @classmethod
    def from_config(cls) -> "LiveSettings":
        from . import config

        parsed_auth, parsed_cookies = parse_header_block(config.PSS_HEADERS)
        return cls(
            basic_auth=config.PSS_BASIC_AUTH or parsed_auth,
            cookies=config.PSS_COOKIES or parsed_cookies,
            webhook_url=config.DISCORD_WEBHOOK_URL,
        )

    def snapshot(self) -> Credentials:
        with self._lock:
            return self._credentials

    def update_credentials(
        self,
        headers: Optional[str] = None,
        basic_auth: Optional[str] = None,
        cookies: Optional[str] = None,
    ) -> Credentials:
        """Replace credentials and re-arm the expired-token alert.

        Values parsed from ``headers`` are applied first; explicit
        ``basic_auth`` / ``cookies`` override them. Empty values keep the
        current setting.
        """
        parsed_auth, parsed_cookies = parse_header_block(headers)
        new_auth = basic_auth or parsed_auth
        new_cookies = cookies or parsed_cookies

        with self._lock:
            current = self._credentials
            self._credentials = Credentials(
                basic_auth=new_auth or current.basic_auth,
                cookies=new_cookies or current.cookies,
                webhook_url=current.webhook_url,
            )
            self._token_alert_sent = False
            updated = self._credentials

        if new_auth:
            logger.info("Basic auth updated")
        if new_cookies:
            logger.info("Cookies updated")
        return updated

    def update_webhook(self, url: Optional[str]) -> None:
        url = (url or "").strip()
        if not url:
            raise ValidationError("Webhook URL is required")
        with self._lock:
            current = self._credentials
            self._credentials = Credentials(
                basic_auth=current.basic_auth,
                cookies=current.cookies,
                webhook_url=url,
            )
        logger.info("Discord webhook updated")

    def claim_token_alert(self) -> bool:
        """Return True the first time it is called after a credential update."""
        with self._lock:
            if self._token_alert_sent:
                return False
            self._token_alert_sent = True
            return True

    @property
    def token_alert_sent(self) -> bool:
        with self._lock:
            return self._token_alert_sent


__all__ = ["Credentials", "LiveSettings", "parse_header_block"]
