"""Stock transition detection and reservation.

The engine compares a fresh :class:`~pss_monitor.models.ProductSnapshot`
with what a :class:`~pss_monitor.models.WatchEntry` saw on the previous
sweep and acts on rising edges only:

* ``WatchMode.ANY``: a product going from no listed sizes to at least one
  (restock edge) gets exactly one size put in the cart, tried in upstream
  order until one reservation succeeds. Going back to no sizes re-arms it.
* ``WatchMode.SIZES``: each watched size going from unavailable to
  available (stock-appeared edge) is reserved on its own. A notified size
  seen out of stock is re-armed.

An alert is only sent after the cart add succeeded. A failed reservation
sends nothing and is retried on the following sweeps while the stock is
still there (``retry_sizes`` / ``restock_retry``), since the previous
availability is overwritten on every sweep and the edge itself will not
fire again.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from . import config
from .errors import MonitorError
from .models import (ProductSnapshot, SizeAvailability, TransitionOutcome,
                     WatchEntry)
from .notifier import build_stock_alert
from .utils import now_utc, product_page_url

logger = logging.getLogger(__name__)


def _in_stock(availability: SizeAvailability, size_id: str) -> bool:
    stock = availability.get(size_id)
    return bool(stock and stock.in_stock)


def _ordered(size_ids: Iterable[str], snapshot: ProductSnapshot) -> List[str]:
    """Upstream order first, then anything the upstream no longer lists."""
    wanted = set(size_ids)
    ordered = [s for s in snapshot.size_mapping if s in wanted]
    ordered.extend(sorted(wanted.difference(ordered)))
    return ordered


class TransitionEngine:
    def __init__(self, client, notifier, *, site_url: str = config.SITE_URL, checkout_url: str = config.CHECKOUT_URL) -> None:
        self.client = client
        self.notifier = notifier
        self.site_url = site_url
        self.checkout_url = checkout_url

    # ---- public -------------------------------------------------------------

    def evaluate(self, entry: WatchEntry, snapshot: ProductSnapshot, *, deliver: bool = True) -> TransitionOutcome:
        """Run one sweep's worth of edge detection for ``entry``.

        With ``deliver=False`` the alerts are only collected on the outcome;
        the caller sends them later through :meth:`deliver`.
        """
        outcome = TransitionOutcome()
        if entry.watch_any:
            self._evaluate_any(entry, snapshot, outcome)
        else:
            self._evaluate_sizes(entry, snapshot, outcome)
        self._store(entry, snapshot)
        if deliver:
            self.deliver(outcome)
        return outcome

    def check_on_add(self, entry: WatchEntry, snapshot: ProductSnapshot, *, deliver: bool = True) -> TransitionOutcome:
        """Handle stock that is already there when a product is added.

        There is no previous observation yet, so anything in stock counts as
        a rising edge.
        """
        outcome = TransitionOutcome()
        available = snapshot.available_sizes
        if entry.watch_any:
            entry.had_any_size = bool(available)
            if available:
                logger.info(
                    "%s - %s has %d sizes available on add",
                    snapshot.descriptor.brand, snapshot.descriptor.title, len(available),
                )
                outcome.events.append("restock")
                self._reserve_one(entry, snapshot, outcome)
        else:
            for size_id in _ordered(entry.watched_sizes, snapshot):
                if not _in_stock(snapshot.availability, size_id):
                    continue
                logger.info("Size %s already in stock on add", snapshot.label_for(size_id))
                outcome.events.append(f"in-stock:{size_id}")
                if not self._reserve_and_notify(entry, snapshot, size_id, outcome):
                    entry.retry_sizes.add(size_id)
        self._store(entry, snapshot)
        if deliver:
            self.deliver(outcome)
        return outcome

    def deliver(self, outcome: TransitionOutcome) -> None:
        """Send the alerts collected on ``outcome``; delivery is best effort."""
        while outcome.alerts:
            alert = outcome.alerts.pop(0)
            if self.notifier.send(alert):
                logger.info("Discord notification sent: %s", alert.title)

    @staticmethod
    def rearm(entry: WatchEntry) -> None:
        """Forget which sizes were notified.

        Stock that is still listed is queued for another reservation on the
        next sweep instead of waiting for it to go out and come back.
        """
        entry.notified_sizes.clear()
        if entry.watch_any:
            entry.retry_sizes.clear()
            entry.restock_retry = entry.had_any_size
        else:
            entry.retry_sizes = {
                size_id for size_id in entry.watched_sizes
                if _in_stock(entry.previous_availability, size_id)
            }

    # ---- modes --------------------------------------------------------------

    def _evaluate_any(self, entry: WatchEntry, snapshot: ProductSnapshot, outcome: TransitionOutcome) -> None:
        descriptor = snapshot.descriptor
        available = snapshot.available_sizes
        has_any = bool(available)

        if not entry.had_any_size and has_any:
            logger.info(
                "RESTOCK DETECTED: %s - %s now has %d sizes",
                descriptor.brand, descriptor.title, len(available),
            )
            outcome.events.append("restock")
            entry.had_any_size = True
            self._reserve_one(entry, snapshot, outcome)
        elif entry.had_any_size and not has_any:
            logger.info("%s - %s is now out of stock", descriptor.brand, descriptor.title)
            outcome.events.append("out-of-stock")
            entry.had_any_size = False
            entry.notified_sizes.clear()
            entry.restock_retry = False
        elif has_any and entry.restock_retry:
            logger.info("Retrying reservation for %s - %s", descriptor.brand, descriptor.title)
            outcome.events.append("restock-retry")
            self._reserve_one(entry, snapshot, outcome)

    def _evaluate_sizes(self, entry: WatchEntry, snapshot: ProductSnapshot, outcome: TransitionOutcome) -> None:
        descriptor = snapshot.descriptor
        entry.retry_sizes.intersection_update(entry.watched_sizes)

        for size_id in _ordered(entry.watched_sizes, snapshot):
            was_in_stock = _in_stock(entry.previous_availability, size_id)
            now_in_stock = _in_stock(snapshot.availability, size_id)
            label = snapshot.label_for(size_id)

            if not now_in_stock:
                entry.retry_sizes.discard(size_id)
                if size_id in entry.notified_sizes:
                    entry.notified_sizes.discard(size_id)
                    logger.info("Size %s of %s went out of stock; alert re-armed", label, descriptor.title)
                    outcome.events.append(f"re-armed:{size_id}")
                continue

            if size_id in entry.notified_sizes:
                continue

            if not was_in_stock:
                logger.info("NEW STOCK: %s - %s - Size %s", descriptor.brand, descriptor.title, label)
                outcome.events.append(f"stock-appeared:{size_id}")
            elif size_id in entry.retry_sizes:
                logger.info("Retrying reservation for %s - Size %s", descriptor.title, label)
                outcome.events.append(f"retry:{size_id}")
            else:
                continue

            if self._reserve_and_notify(entry, snapshot, size_id, outcome):
                entry.retry_sizes.discard(size_id)
            else:
                entry.retry_sizes.add(size_id)

    # ---- actions ------------------------------------------------------------

    def _reserve_one(self, entry: WatchEntry, snapshot: ProductSnapshot, outcome: TransitionOutcome) -> bool:
        for size_id in snapshot.available_sizes:
            if self._reserve_and_notify(entry, snapshot, size_id, outcome):
                entry.restock_retry = False
                return True
        entry.restock_retry = True
        logger.warning("No size of %s could be reserved; will retry next sweep", snapshot.descriptor.title)
        return False

    def _reserve_and_notify(
        self,
        entry: WatchEntry,
        snapshot: ProductSnapshot,
        size_id: str,
        outcome: TransitionOutcome,
    ) -> bool:
        try:
            self.client.add_to_cart(entry.product_id, size_id)
        except MonitorError as e:
            logger.error("Add to cart failed for product %s size %s: %s", entry.product_id, size_id, e)
            outcome.failed.append(size_id)
            return False
        outcome.reserved.append(size_id)

        stock = snapshot.availability.get(size_id)
        alert = build_stock_alert(
            snapshot.descriptor,
            snapshot.label_for(size_id),
            (stock.quantity if stock else 0) or 1,
            product_page_url(entry.product_id, self.site_url),
            self.checkout_url,
        )
        outcome.alerts.append(alert)
        entry.notified_sizes.add(size_id)
        outcome.notified.append(size_id)
        return True

    @staticmethod
    def _store(entry: WatchEntry, snapshot: ProductSnapshot) -> None:
        entry.previous_availability = dict(snapshot.availability)
        entry.last_descriptor = snapshot.descriptor
        entry.last_size_mapping = dict(snapshot.size_mapping)
        entry.last_checked = now_utc()
        entry.last_error = None


__all__ = ["TransitionEngine"]
