# tests/conftest.py
from typing import Iterable, Tuple

import pytest

from pss_monitor.engine import TransitionEngine
from pss_monitor.errors import UpstreamError
from pss_monitor.live_config import LiveSettings
from pss_monitor.models import CartResult
from pss_monitor.monitor import StockMonitor
from pss_monitor.parser import parse_product

WEBHOOK = "https://discord.test/api/webhooks/1/abc"


def make_payload(product_id: str = "3158263", sizes: Iterable[Tuple[str, str]] = (("101", "S"), ("102", "M")), **extra) -> dict:
    """Product-detail payload shaped like the PSS API answer."""
    sizes = list(sizes)
    payload = {
        "entity_id": product_id,
        "name": "Veste de running",
        "brand": {"name": "Asics"},
        "prices": {"current": "39,99 €", "old": "89,99 €", "discount": 55},
        "images": ["https://cdn.test/img/1.jpg"],
        "inStock": bool(sizes),
        "product_type": "configurable",
        "options": [
            {"code": "color", "values": [{"id": 7, "value": "Noir"}]},
            {
                "code": "size",
                "values": [
                    {"id": int(size_id), "value": label, "product_id": f"9{size_id}"}
                    for size_id, label in sizes
                ],
            },
        ],
    }
    payload.update(extra)
    return payload


def snapshot(sizes=(), product_id: str = "1"):
    return parse_product(make_payload(product_id, sizes), product_id)


class FakeClient:
    def __init__(self):
        self.payloads = {}
        self.fetch_errors = {}
        self.cart_failures = set()
        self.fetch_calls = []
        self.cart_calls = []

    def set_sizes(self, product_id, sizes):
        self.payloads[product_id] = make_payload(product_id, sizes)

    def fetch_product(self, product_id):
        self.fetch_calls.append(product_id)
        if product_id in self.fetch_errors:
            raise self.fetch_errors[product_id]
        return self.payloads[product_id]

    def add_to_cart(self, product_id, size_id):
        self.cart_calls.append((product_id, size_id))
        if size_id in self.cart_failures:
            raise UpstreamError(None, "Ce produit n'est plus disponible")
        return CartResult(success=True, message="Added to cart", count=len(self.cart_calls))

    def close(self):
        pass


class FakeNotifier:
    def __init__(self):
        self.alerts = []

    def send(self, alert):
        self.alerts.append(alert)
        return True

    def titles(self):
        return [a.title for a in self.alerts]


class FakeScheduler:
    def __init__(self):
        self.running = False
        self.starts = 0
        self.stops = 0

    @property
    def is_running(self):
        return self.running

    def start(self):
        if self.running:
            return False
        self.running = True
        self.starts += 1
        return True

    def stop(self):
        if not self.running:
            return False
        self.running = False
        self.stops += 1
        return True


@pytest.fixture
def settings():
    return LiveSettings(basic_auth="dXNlcjpwYXNz", cookies="access_token=abc", webhook_url=WEBHOOK)


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def engine(client, notifier):
    return TransitionEngine(client, notifier, site_url="https://shop.test", checkout_url="https://shop.test/cart")


@pytest.fixture
def monitor(client, notifier, settings, scheduler):
    return StockMonitor(client, notifier, settings, scheduler=scheduler)
