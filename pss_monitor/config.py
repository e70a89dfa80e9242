"""Configuration loader.

Reads environment variables and `.env` to configure the service.
Credentials and the webhook read here are only the start-up values; the
live copies are held by :class:`pss_monitor.live_config.LiveSettings` and
can be replaced at runtime.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load variables from a .env file if present (project root).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")

logger = logging.getLogger(__name__)


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


# ---- Upstream API ------------------------------------------------------------

# Mobile API host. Should not include a trailing slash.
API_BASE_URL: str = _get_env("API_BASE_URL", "https://raven.privatesportshop.fr")

# Public storefront, used to build product links in alerts.
SITE_URL: str = _get_env("SITE_URL", "https://www.privatesportshop.fr")
CHECKOUT_URL: str = _get_env("CHECKOUT_URL", SITE_URL.rstrip("/") + "/checkout/cart")

STORE_ID: str = _get_env("STORE_ID", "20")
SHIPMENT: str = _get_env("SHIPMENT", "FR")

USER_AGENT: str = _get_env("USER_AGENT", "SportScape/3.14.0 PSS iOS (26.2)")

REQUEST_TIMEOUT_SECONDS: int = _parse_int(_get_env("REQUEST_TIMEOUT_SECONDS", "30"), 30)

# How long the upstream keeps an item in the cart. Shown in alerts only.
CART_RESERVATION_MINUTES: int = _parse_int(_get_env("CART_RESERVATION_MINUTES", "15"), 15)

# ---- Credentials -------------------------------------------------------------

# Raw request headers copied from the app (one "Name: value" per line).
# Authorization and Cookie are extracted from it; the direct values below win.
PSS_HEADERS: str = _get_env("PSS_HEADERS", "") or ""
PSS_BASIC_AUTH: str = _get_env("PSS_BASIC_AUTH", "") or ""
PSS_COOKIES: str = _get_env("PSS_COOKIES", "") or ""

# ---- Notifications -----------------------------------------------------------

DISCORD_WEBHOOK_URL: str = _get_env("DISCORD_WEBHOOK", "") or ""
DISCORD_USERNAME: str = _get_env("DISCORD_USERNAME", "PSS Stock Monitor")
WEBHOOK_USER_AGENT: str = _get_env("WEBHOOK_USER_AGENT", "pss-monitor/0.1 (+webhook)")

# ---- Monitoring loop ---------------------------------------------------------

CHECK_INTERVAL_SECONDS: int = _parse_int(_get_env("CHECK_INTERVAL_SECONDS", "60"), 60)

# ---- Control server ----------------------------------------------------------

CONTROL_HOST: str = _get_env("CONTROL_HOST", "0.0.0.0")
PORT: int = _parse_int(_get_env("PORT", "3000"), 3000)

# Logging level: DEBUG, INFO, WARNING, ERROR.
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO")


# ---- Validation --------------------------------------------------------------

def validate() -> None:
    """Check configuration and warn about anything that will limit the service.

    Missing credentials or a missing webhook are not fatal: both can be set
    later through the control server.
    """
    if CHECK_INTERVAL_SECONDS <= 0:
        raise RuntimeError("CHECK_INTERVAL_SECONDS must be a positive number of seconds.")
    if not DISCORD_WEBHOOK_URL:
        logger.warning("DISCORD_WEBHOOK is not set; stock alerts will be skipped until one is configured.")
    if not (PSS_HEADERS or PSS_BASIC_AUTH):
        logger.warning("No basic auth configured; cart reservations will likely be rejected.")
    if not (PSS_HEADERS or PSS_COOKIES):
        logger.warning("No cookies configured; upstream requests may be refused.")


__all__ = [
    "API_BASE_URL",
    "SITE_URL",
    "CHECKOUT_URL",
    "STORE_ID",
    "SHIPMENT",
    "USER_AGENT",
    "REQUEST_TIMEOUT_SECONDS",
    "CART_RESERVATION_MINUTES",
    "PSS_HEADERS",
    "PSS_BASIC_AUTH",
    "PSS_COOKIES",
    "DISCORD_WEBHOOK_URL",
    "DISCORD_USERNAME",
    "WEBHOOK_USER_AGENT",
    "CHECK_INTERVAL_SECONDS",
    "CONTROL_HOST",
    "PORT",
    "LOG_LEVEL",
    "validate",
]
