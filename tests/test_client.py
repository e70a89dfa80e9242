import gzip
import io
import json
import zlib
from unittest import mock

import brotli
import pytest
import requests
from requests.adapters import HTTPAdapter
from urllib3.response import HTTPResponse

from pss_monitor.client import ApiClient
from pss_monitor.errors import NetworkError, ParseError, UpstreamError
from pss_monitor.live_config import LiveSettings

BASE = "https://api.test"


def _response(status=200, payload=None, text=""):
    resp = mock.Mock()
    resp.status_code = status
    resp.text = text
    if isinstance(payload, Exception):
        resp.json.side_effect = payload
    else:
        resp.json.return_value = payload
    return resp


@pytest.fixture
def settings():
    return LiveSettings(basic_auth="dXNlcjpwYXNz", cookies="access_token=abc")


@pytest.fixture
def session():
    return mock.Mock()


@pytest.fixture
def api(settings, session):
    return ApiClient(settings, session, base_url=BASE + "/", store_id="20", shipment="FR", timeout=5)


def test_fetch_product_request(api, session):
    session.request.return_value = _response(payload={"entity_id": "1"})

    assert api.fetch_product("1") == {"entity_id": "1"}

    args, kwargs = session.request.call_args
    assert args == ("GET", "https://api.test/api/7/v2.0.0/products/1/")
    assert kwargs["params"] == {"shipment": "FR", "store_id": "20"}
    assert kwargs["timeout"] == 5
    assert kwargs["headers"]["Cookie"] == "access_token=abc"
    assert "Authorization" not in kwargs["headers"]


def test_add_to_cart_request(api, session):
    session.request.return_value = _response(payload={"success": True, "message": "OK", "count": "3"})

    result = api.add_to_cart("1", "101")

    assert result.success is True
    assert result.count == 3
    args, kwargs = session.request.call_args
    assert args == ("POST", "https://api.test/api/7/v2.0.0/basket/add/")
    assert kwargs["data"] == {"productID": "1", "quantity": "1", "options[size]": "101"}
    assert kwargs["headers"]["Authorization"] == "Basic dXNlcjpwYXNz"
    assert kwargs["headers"]["Content-Type"] == "application/x-www-form-urlencoded"


def test_add_to_cart_rejected(api, session):
    session.request.return_value = _response(payload={"success": False, "message": "Stock insuffisant"})

    with pytest.raises(UpstreamError, match="Stock insuffisant") as exc:
        api.add_to_cart("1", "101")
    assert exc.value.status_code is None


def test_http_error_status(api, session):
    session.request.return_value = _response(status=401, text="Unauthorized")

    with pytest.raises(UpstreamError) as exc:
        api.fetch_product("1")

    assert exc.value.status_code == 401
    assert str(exc.value) == "HTTP 401: Unauthorized"


def test_timeout_and_connection_errors(api, session):
    session.request.side_effect = requests.Timeout("read timed out")
    with pytest.raises(NetworkError, match="Request timeout"):
        api.fetch_product("1")

    session.request.side_effect = requests.ConnectionError("refused")
    with pytest.raises(NetworkError, match="Request failed"):
        api.fetch_product("1")


def test_invalid_json(api, session):
    session.request.return_value = _response(payload=ValueError("Expecting value"))

    with pytest.raises(ParseError):
        api.fetch_product("1")


def test_rotated_credentials_apply_to_next_request(api, session, settings):
    session.request.return_value = _response(payload={"success": True})
    api.add_to_cart("1", "101")

    settings.update_credentials(basic_auth="bmV3", cookies="access_token=new")
    api.add_to_cart("1", "101")

    headers = session.request.call_args.kwargs["headers"]
    assert headers["Authorization"] == "Basic bmV3"
    assert headers["Cookie"] == "access_token=new"


class CannedAdapter(HTTPAdapter):
    """Answers every request with a fixed, content-encoded body."""

    def __init__(self, body: bytes, encoding: str):
        super().__init__()
        self.body = body
        self.encoding = encoding
        self.sent = []

    def send(self, request, **kwargs):
        self.sent.append(request)
        raw = HTTPResponse(
            body=io.BytesIO(self.body),
            headers={"Content-Encoding": self.encoding, "Content-Type": "application/json"},
            status=200,
            preload_content=False,
            decode_content=True,
        )
        return self.build_response(request, raw)


@pytest.mark.parametrize("encoding, compress", [("gzip", gzip.compress), ("deflate", zlib.compress), ("br", brotli.compress)])
def test_compressed_responses_are_decoded(settings, encoding, compress):
    payload = {"entity_id": "1", "name": "Veste"}
    adapter = CannedAdapter(compress(json.dumps(payload).encode("utf-8")), encoding)
    api = ApiClient(settings, base_url=BASE)
    api.session.mount(BASE, adapter)
    try:
        assert api.fetch_product("1") == payload
    finally:
        api.close()

    assert "br" in adapter.sent[0].headers["Accept-Encoding"]
