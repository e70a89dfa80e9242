"""Client for the PrivateSportShop mobile API.

Two calls are needed: the product detail (public, cookie only) and the
basket add (basic auth). Neither is retried; a failed call surfaces as a
:class:`~pss_monitor.errors.MonitorError` and the next sweep tries again.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from . import config
from .errors import NetworkError, ParseError, UpstreamError
from .live_config import LiveSettings
from .models import CartResult
from .utils import get_http_session

logger = logging.getLogger(__name__)

PRODUCT_PATH = "/api/7/v2.0.0/products/{product_id}/"
BASKET_ADD_PATH = "/api/7/v2.0.0/basket/add/"


class ApiClient:
    def __init__(
        self,
        settings: LiveSettings,
        session: Optional[requests.Session] = None,
        *,
        base_url: str = config.API_BASE_URL,
        store_id: str = config.STORE_ID,
        shipment: str = config.SHIPMENT,
        timeout: float = config.REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.settings = settings
        self.session = session or get_http_session()
        self.base_url = base_url.rstrip("/")
        self.store_id = store_id
        self.shipment = shipment
        self.timeout = timeout

    def close(self) -> None:
        self.session.close()

    def _headers(self, *, use_basic_auth: bool, form: bool) -> Dict[str, str]:
        creds = self.settings.snapshot()
        headers = {
            "Content-Type": "application/x-www-form-urlencoded" if form else "application/json",
        }
        if creds.cookies:
            headers["Cookie"] = creds.cookies
        if use_basic_auth and creds.basic_auth:
            headers["Authorization"] = f"Basic {creds.basic_auth}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, Any]] = None,
        use_basic_auth: bool = False,
    ) -> Any:
        url = self.base_url + path
        headers = self._headers(use_basic_auth=use_basic_auth, form=data is not None)
        try:
            resp = self.session.request(
                method, url, params=params, data=data, headers=headers, timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise NetworkError(f"Request timeout: {method} {path}") from e
        except requests.RequestException as e:
            raise NetworkError(f"Request failed: {method} {path}: {e}") from e

        if resp.status_code >= 400:
            raise UpstreamError(resp.status_code, resp.text)

        try:
            return resp.json()
        except ValueError as e:
            raise ParseError(f"Parse error: invalid JSON from {path}: {e}") from e

    def fetch_product(self, product_id: str) -> Any:
        logger.info("Fetching product %s...", product_id)
        return self._request(
            "GET",
            PRODUCT_PATH.format(product_id=product_id),
            params={"shipment": self.shipment, "store_id": self.store_id},
        )

    def add_to_cart(self, product_id: str, size_id: str) -> CartResult:
        """Put one unit of ``size_id`` in the basket.

        Raises :class:`UpstreamError` when the API answers without
        ``success``; the caller decides what a failed reservation means.
        """
        logger.info("Adding to cart: product %s, size %s", product_id, size_id)
        form = {"productID": str(product_id), "quantity": "1", "options[size]": str(size_id)}
        result = self._request("POST", BASKET_ADD_PATH, data=form, use_basic_auth=True)

        if not isinstance(result, dict) or not result.get("success"):
            message = result.get("message") if isinstance(result, dict) else None
            raise UpstreamError(None, message or "Failed to add to cart")

        count = result.get("count")
        try:
            count = int(count) if count is not None else None
        except (TypeError, ValueError):
            count = None
        logger.info("Added to cart successfully (product %s, size %s)", product_id, size_id)
        return CartResult(success=True, message=result.get("message") or "Added to cart", count=count)


__all__ = ["ApiClient", "PRODUCT_PATH", "BASKET_ADD_PATH"]
