"""Helper utilities.

This module centralises common helper functions such as creating a
configured HTTP session, applying retry policies to network calls and
turning storefront URLs into product ids.
"""

from __future__ import annotations

import datetime as _dt
import logging
import re
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs, urlparse

import requests
from requests import Response
from tenacity import (after_log, retry, retry_if_exception_type,
                      stop_after_attempt, wait_exponential)

from . import config


logger = logging.getLogger(__name__)

_PRODUCT_ID_IN_PATH = re.compile(r"/id/(\d+)")


def get_http_session() -> requests.Session:
    """Return a new HTTP session that looks like the PSS mobile app.

    ``Accept-Encoding`` advertises brotli as well as gzip/deflate; urllib3
    decodes all three as long as the ``brotli`` package is installed.
    Caller is responsible for closing the session.
    """
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": config.USER_AGENT,
            "Accept": "application/json",
            "Accept-Language": "fr-FR,fr;q=0.9",
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
        }
    )
    return session


def get_webhook_session() -> requests.Session:
    """Return a plain session for webhook delivery.

    None of the mobile-app headers are sent to third parties.
    """
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": config.WEBHOOK_USER_AGENT,
            "Accept": "application/json",
        }
    )
    return session


class HTTPError(Exception):
    """Raised when an HTTP request fails (after retries, for 5xx)."""


class ServerError(HTTPError):
    """Raised on a 5xx answer; the only HTTP status that is retried."""


def _raise_for_status(resp: Response) -> None:
    try:
        resp.raise_for_status()
    except requests.RequestException as e:
        raise HTTPError(str(e)) from e


def retryable_request(method: Callable[[requests.Session, str, Dict[str, Any]], Response]) -> Callable[..., Response]:
    """Decorator factory to apply retry logic to HTTP calls.

    The decorated function must accept a `requests.Session` as its first
    argument, followed by URL and optional kwargs, and return a
    `requests.Response`.  Retries are attempted for network errors and
    5xx answers only; a 4xx (deleted webhook, rate limit) fails at once
    with :class:`HTTPError`.  A maximum of 5 attempts are made with
    exponential back‑off between 1 and 10 seconds.

    Only used for webhook delivery; upstream shop calls are never retried.
    """

    @retry(
        reraise=True,
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=(
            retry_if_exception_type(requests.RequestException)
            | retry_if_exception_type(ServerError)
        ),
        after=after_log(logger, logging.WARNING),
    )
    def wrapper(session: requests.Session, url: str, **kwargs: Any) -> Response:
        response = method(session, url, **kwargs)
        if response.status_code >= 500:
            raise ServerError(f"Server returned status {response.status_code}")
        _raise_for_status(response)
        return response

    return wrapper


def parse_product_url(url: str) -> Optional[str]:
    """Extract a product id from a storefront URL.

    ``https://www.privatesportshop.fr/catalog/product/view/id/3158263`` gives
    ``"3158263"``; failing that the ``id`` query parameter is used.
    """
    if not url:
        return None
    match = _PRODUCT_ID_IN_PATH.search(url)
    if match:
        return match.group(1)
    try:
        query = urlparse(url).query
    except ValueError:
        return None
    values = parse_qs(query).get("id")
    if values and values[0].strip():
        return values[0].strip()
    return None


def product_page_url(product_id: str, site_url: str = config.SITE_URL) -> str:
    return f"{site_url.rstrip('/')}/catalog/product/view/id/{product_id}"


def now_utc() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc)


__all__ = [
    "get_http_session",
    "get_webhook_session",
    "retryable_request",
    "HTTPError",
    "ServerError",
    "parse_product_url",
    "product_page_url",
    "now_utc",
]
