import pytest
import requests

from pss_monitor.control_server import ControlServer
from pss_monitor.errors import UpstreamError


@pytest.fixture
def server(monitor):
    srv = ControlServer(monitor, host="127.0.0.1", port=0)
    srv.start()
    yield srv
    srv.stop()


@pytest.fixture
def http(server):
    session = requests.Session()

    def call(method, path, **kwargs):
        return session.request(method, server.base_url + path, timeout=5, **kwargs)

    yield call
    session.close()


def test_health_and_ping(http):
    assert http("GET", "/health").json()["status"] == "ok"
    resp = http("GET", "/ping")
    assert resp.status_code == 200
    assert resp.text == "pong"


def test_add_list_remove(http, client):
    client.set_sizes("1", [("101", "S")])

    resp = http("POST", "/api/products/add", json={"productId": "1", "watchedSizes": ["102"]})
    assert resp.status_code == 200
    assert resp.json()["key"] == "1"

    products = http("GET", "/api/products").json()
    assert products["isMonitoring"] is True
    assert [p["key"] for p in products["products"]] == ["1"]

    assert http("DELETE", "/api/products/1").json()["success"] is True
    assert http("DELETE", "/api/products/1").status_code == 404
    assert http("GET", "/api/history").json()["history"][0]["isCurrentlyMonitored"] is False


def test_validation_errors_are_400(http):
    resp = http("POST", "/api/products/add", json={"productId": "1"})
    assert resp.status_code == 400
    assert "watchedSizes" in resp.json()["error"]

    resp = http("POST", "/api/products/fetch", json={"url": "https://example.com/nope"})
    assert resp.status_code == 400

    resp = http("POST", "/api/products/add", data="{not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400


def test_upstream_failure_is_500(http, client):
    client.fetch_errors["1"] = UpstreamError(503, "Service Unavailable")

    resp = http("POST", "/api/products/fetch", json={"productId": "1"})

    assert resp.status_code == 500
    assert resp.json()["error"] == "HTTP 503: Service Unavailable"


def test_sizes_and_reset_routes(http, client):
    assert http("PUT", "/api/products/9/sizes", json={"watchedSizes": ["1"]}).status_code == 404
    assert http("POST", "/api/products/9/reset").status_code == 404

    client.set_sizes("1", [])
    http("POST", "/api/products/add", json={"productId": "1", "watchAll": True})

    resp = http("PUT", "/api/products/1/sizes", json={"watchedSizes": ["102", "101"]})
    assert resp.json() == {"success": True, "watchedSizes": ["101", "102"]}
    assert http("POST", "/api/products/1/reset").json()["success"] is True


def test_config_routes(http, monitor):
    resp = http("POST", "/api/config/auth", json={"basicAuth": "bmV3", "cookies": "access_token=new"})
    assert resp.status_code == 200
    assert monitor.settings.snapshot().basic_auth == "bmV3"

    assert http("POST", "/api/config/discord", json={}).status_code == 400
    http("POST", "/api/config/discord", json={"webhook": "https://discord.test/hook"})
    assert monitor.settings.snapshot().webhook_url == "https://discord.test/hook"


def test_history_routes(http, client):
    client.set_sizes("1", [])
    http("POST", "/api/products/add", json={"productId": "1", "watchAll": True})

    assert http("DELETE", "/api/history/404").status_code == 404
    assert http("DELETE", "/api/history/1").status_code == 200
    assert http("DELETE", "/api/history").json()["success"] is True
    assert http("GET", "/api/history").json() == {"history": []}


def test_unknown_route(http):
    assert http("GET", "/nope").status_code == 404
    assert http("PATCH", "/api/products").status_code in (404, 501)
