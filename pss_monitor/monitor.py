"""Monitor service: the operations behind the control server.

:class:`StockMonitor` ties the registry, the history, the transition
engine and the scheduler together. Every registry mutation and every
transition evaluation runs under one re-entrant lock, so two evaluations
(or an evaluation and an add/remove) never interleave. Product fetches and
alert delivery happen outside the lock; control calls are never held up by
a slow upstream or a webhook being retried.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Optional

from . import config
from .client import ApiClient
from .engine import TransitionEngine
from .errors import (MonitorError, NotFoundError, ValidationError,
                     looks_like_auth_failure)
from .history import HistoryStore
from .live_config import LiveSettings
from .models import (AddResult, ProductSnapshot, WatchEntry, WatchMode,
                     availability_to_dict)
from .notifier import DiscordNotifier, build_token_expired_alert
from .parser import parse_product
from .registry import MonitorRegistry
from .scheduler import PollingScheduler
from .utils import parse_product_url

logger = logging.getLogger(__name__)


def _clean_sizes(sizes: Optional[Iterable]) -> List[str]:
    if sizes is None:
        return []
    if isinstance(sizes, (str, bytes)) or not isinstance(sizes, Iterable):
        raise ValidationError("watchedSizes must be a list of size ids")
    cleaned = []
    for size in sizes:
        s = str(size).strip()
        if s and s not in cleaned:
            cleaned.append(s)
    return cleaned


class StockMonitor:
    def __init__(
        self,
        client: ApiClient,
        notifier: DiscordNotifier,
        settings: LiveSettings,
        *,
        interval_seconds: float = config.CHECK_INTERVAL_SECONDS,
        engine: Optional[TransitionEngine] = None,
        scheduler: Optional[PollingScheduler] = None,
    ) -> None:
        self.client = client
        self.notifier = notifier
        self.settings = settings
        self.engine = engine or TransitionEngine(client, notifier)
        self.registry = MonitorRegistry()
        self.history = HistoryStore()
        self.scheduler = scheduler or PollingScheduler(self.sweep, interval_seconds)
        self._lock = threading.RLock()

    # ---- snapshots ----------------------------------------------------------

    def _fetch_snapshot(self, product_id: str) -> ProductSnapshot:
        payload = self.client.fetch_product(product_id)
        return parse_product(payload, product_id)

    def _handle_auth_failure(self, error: BaseException) -> None:
        if not looks_like_auth_failure(error):
            return
        if not self.settings.snapshot().webhook_url:
            return
        if self.settings.claim_token_alert():
            logger.warning("Upstream rejected our credentials; sending token-expired alert")
            self.notifier.send(build_token_expired_alert(str(error)))

    # ---- control operations -------------------------------------------------

    def preview(self, product_id: Optional[str] = None, url: Optional[str] = None) -> dict:
        """Fetch a product without tracking it."""
        if url and not product_id:
            product_id = parse_product_url(url)
            if not product_id:
                raise ValidationError("Invalid PrivateSportShop URL format")
        if not product_id:
            raise ValidationError("Product ID is required (or provide URL)")
        product_id = str(product_id).strip()

        try:
            snapshot = self._fetch_snapshot(product_id)
        except MonitorError as e:
            logger.error("Fetch error for %s: %s", product_id, e)
            self._handle_auth_failure(e)
            raise

        descriptor = snapshot.descriptor
        stock = availability_to_dict(snapshot.availability)
        return {
            "productId": product_id,
            "productInfo": descriptor.to_dict(),
            "inStock": descriptor.in_stock,
            "hasSizes": bool(snapshot.size_mapping),
            "sizes": [
                {
                    "sizeId": size_id,
                    "size": option.label,
                    "productId": option.variant_id,
                    "stock": stock.get(size_id, {"inStock": False, "quantity": 0}),
                }
                for size_id, option in snapshot.size_mapping.items()
            ],
        }

    def add(self, product_id, watched_sizes: Optional[Iterable] = None, watch_any: bool = False) -> AddResult:
        """Start tracking a product.

        The product is fetched first; if that fails nothing is changed.
        Stock already present is handled right away (reserve, then alert).
        """
        if product_id is None or not str(product_id).strip():
            raise ValidationError("Product ID is required")
        sizes = _clean_sizes(watched_sizes)
        if not watch_any and not sizes:
            raise ValidationError(
                "watchedSizes array is required (or set watchAll: true for out-of-stock products)"
            )
        key = str(product_id).strip()

        try:
            snapshot = self._fetch_snapshot(key)
        except MonitorError as e:
            logger.error("Add product error for %s: %s", key, e)
            self._handle_auth_failure(e)
            raise

        with self._lock:
            entry = WatchEntry(
                product_id=key,
                mode=WatchMode.ANY if watch_any else WatchMode.SIZES,
                watched_sizes=set() if watch_any else set(sizes),
            )
            outcome = self.engine.check_on_add(entry, snapshot, deliver=False)

            self.registry.put(entry)
            self.history.record(snapshot.descriptor, snapshot.size_mapping, product_id=key)
            self.scheduler.start()
        self.engine.deliver(outcome)

        descriptor = snapshot.descriptor
        in_stock = bool(snapshot.size_mapping)
        if watch_any:
            message = (
                f"Monitoring {descriptor.brand} - {descriptor.title} for ANY stock "
                f"(currently {'in stock' if in_stock else 'out of stock'})"
            )
        else:
            message = f"Now monitoring {descriptor.brand} - {descriptor.title}"
        logger.info(message)

        return AddResult(
            key=key,
            mode=entry.mode,
            in_stock=in_stock,
            message=message,
            watched_sizes=[snapshot.label_for(s) for s in sizes] if not watch_any else [],
            available_sizes=[
                {"sizeId": size_id, "size": option.label}
                for size_id, option in snapshot.size_mapping.items()
            ],
            already_in_stock=[snapshot.label_for(s) for s in outcome.notified],
        )

    def remove(self, key: str) -> bool:
        with self._lock:
            removed = self.registry.remove(str(key))
            if removed and len(self.registry) == 0:
                self.scheduler.stop()
        if removed:
            logger.info("Product %s removed from monitoring", key)
        return removed

    def update_watched_sizes(self, key: str, sizes: Optional[Iterable]) -> List[str]:
        """Replace the watched sizes, keeping notification memory untouched.

        A size that is already in stock when it is added here will not alert
        until it goes out and comes back, unless notifications are reset.
        """
        cleaned = _clean_sizes(sizes)
        if not cleaned:
            raise ValidationError("watchedSizes must contain at least one size id")
        with self._lock:
            entry = self.registry.get(key)
            if entry is None:
                raise NotFoundError("Product not found")
            entry.watched_sizes = set(cleaned)
            if entry.mode is WatchMode.ANY:
                logger.info("Product %s switched from watch-any to watching %d sizes", key, len(cleaned))
                entry.mode = WatchMode.SIZES
            return sorted(entry.watched_sizes)

    def reset_notifications(self, key: str) -> None:
        with self._lock:
            entry = self.registry.get(key)
            if entry is None:
                raise NotFoundError("Product not found")
            self.engine.rearm(entry)
        logger.info("Notifications reset for %s", key)

    def list_products(self) -> dict:
        with self._lock:
            products = [entry.to_dict() for entry in self.registry.entries()]
        return {"products": products, "isMonitoring": self.scheduler.is_running}

    def list_history(self) -> dict:
        history = [
            item.to_dict(is_currently_monitored=item.product_id in self.registry)
            for item in self.history.list()
        ]
        return {"history": history}

    def remove_history(self, key: str) -> None:
        if not self.history.remove(key):
            raise NotFoundError("Item not found in history")

    def clear_history(self) -> None:
        self.history.clear()
        logger.info("History cleared")

    def update_credentials(
        self,
        headers: Optional[str] = None,
        basic_auth: Optional[str] = None,
        cookies: Optional[str] = None,
    ) -> None:
        self.settings.update_credentials(headers=headers, basic_auth=basic_auth, cookies=cookies)

    def update_webhook(self, url: Optional[str]) -> None:
        self.settings.update_webhook(url)

    def health(self) -> dict:
        creds = self.settings.snapshot()
        return {
            "status": "ok",
            "monitoring": self.scheduler.is_running,
            "productsCount": len(self.registry),
            "hasAuth": bool(creds.basic_auth),
            "hasCookies": bool(creds.cookies),
            "hasDiscord": bool(creds.webhook_url),
        }

    # ---- sweep --------------------------------------------------------------

    def sweep(self) -> int:
        """Check every tracked product once; returns how many were processed."""
        with self._lock:
            keys = self.registry.keys()
        if not keys:
            return 0
        logger.info("Checking %d product(s)...", len(keys))

        processed = 0
        for key in keys:
            if self._check_entry(key):
                processed += 1
        return processed

    def _check_entry(self, key: str) -> bool:
        with self._lock:
            entry = self.registry.get(key)
        if entry is None:
            return False

        try:
            snapshot = self._fetch_snapshot(entry.product_id)
            with self._lock:
                # Removed or re-added while the fetch was in flight.
                if self.registry.get(key) is not entry:
                    logger.info("Product %s changed during the sweep; skipping", key)
                    return False
                outcome = self.engine.evaluate(entry, snapshot, deliver=False)
                self.history.touch(key)
        except MonitorError as e:
            self._record_error(entry, e)
            logger.error("Error monitoring %s: %s", key, e)
            self._handle_auth_failure(e)
            return True
        except Exception as e:
            self._record_error(entry, e)
            logger.exception("Unexpected error monitoring %s", key)
            self._handle_auth_failure(e)
            return True

        self.engine.deliver(outcome)
        return True

    def _record_error(self, entry: WatchEntry, error: BaseException) -> None:
        with self._lock:
            entry.last_error = str(error)


__all__ = ["StockMonitor"]
