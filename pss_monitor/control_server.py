"""JSON control server.

Single-purpose lightweight server exposing the monitor operations to a
dashboard or to curl. Every route is a thin wrapper around a
:class:`~pss_monitor.monitor.StockMonitor` method.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import unquote, urlparse

from .errors import MonitorError, NotFoundError, ValidationError
from .monitor import StockMonitor

logger = logging.getLogger(__name__)

_PRODUCT_SIZES = re.compile(r"^/api/products/([^/]+)/sizes/?$")
_PRODUCT_RESET = re.compile(r"^/api/products/([^/]+)/reset/?$")
_PRODUCT_KEY = re.compile(r"^/api/products/([^/]+)/?$")
_HISTORY_KEY = re.compile(r"^/api/history/([^/]+)/?$")

MAX_BODY_BYTES = 1024 * 1024


class ControlHandler(BaseHTTPRequestHandler):
    """Routes requests to the monitor bound on the server instance."""

    server_version = "PSSMonitor/1.0"

    @property
    def monitor(self) -> StockMonitor:
        return self.server.monitor  # type: ignore[attr-defined]

    def log_message(self, format, *args):
        """Override to use Python logging instead of stderr."""
        logger.debug("%s - %s", self.address_string(), format % args)

    # ---- verbs ----------------------------------------------------------------

    def do_GET(self):
        self._dispatch("GET")

    def do_POST(self):
        self._dispatch("POST")

    def do_PUT(self):
        self._dispatch("PUT")

    def do_DELETE(self):
        self._dispatch("DELETE")

    def _dispatch(self, method: str) -> None:
        path = urlparse(self.path).path
        try:
            body = self._read_json() if method in ("POST", "PUT") else {}
            handled = self._route(method, path, body)
            if not handled:
                self._send_json(404, {"error": "Not found"})
        except ValidationError as e:
            self._send_json(400, {"error": str(e)})
        except NotFoundError as e:
            self._send_json(404, {"error": str(e)})
        except MonitorError as e:
            self._send_json(500, {"error": str(e)})
        except Exception as e:
            logger.exception("Error handling %s %s", method, path)
            self._send_json(500, {"error": f"Server error: {e}"})

    def _route(self, method: str, path: str, body: dict) -> bool:
        m = self.monitor

        if method == "GET":
            if path in ("/health", "/"):
                self._send_json(200, m.health())
            elif path == "/ping":
                self._send_text(200, "pong")
            elif path == "/api/products":
                self._send_json(200, m.list_products())
            elif path == "/api/history":
                self._send_json(200, m.list_history())
            else:
                return False
            return True

        if method == "POST":
            if path == "/api/products/fetch":
                self._send_json(200, m.preview(product_id=body.get("productId"), url=body.get("url")))
            elif path == "/api/products/add":
                result = m.add(
                    body.get("productId"),
                    watched_sizes=body.get("watchedSizes"),
                    watch_any=bool(body.get("watchAll")),
                )
                self._send_json(200, result.to_dict())
            elif path == "/api/config/auth":
                m.update_credentials(
                    headers=body.get("headers"),
                    basic_auth=body.get("basicAuth"),
                    cookies=body.get("cookies"),
                )
                self._send_json(200, {"success": True, "message": "Auth updated"})
            elif path == "/api/config/discord":
                m.update_webhook(body.get("webhook"))
                self._send_json(200, {"success": True, "message": "Discord webhook updated"})
            elif _PRODUCT_RESET.match(path):
                m.reset_notifications(unquote(_PRODUCT_RESET.match(path).group(1)))
                self._send_json(200, {"success": True, "message": "Notifications reset"})
            else:
                return False
            return True

        if method == "PUT":
            match = _PRODUCT_SIZES.match(path)
            if not match:
                return False
            sizes = m.update_watched_sizes(unquote(match.group(1)), body.get("watchedSizes"))
            self._send_json(200, {"success": True, "watchedSizes": sizes})
            return True

        if method == "DELETE":
            if path == "/api/history":
                m.clear_history()
                self._send_json(200, {"success": True, "message": "History cleared"})
            elif _HISTORY_KEY.match(path):
                m.remove_history(unquote(_HISTORY_KEY.match(path).group(1)))
                self._send_json(200, {"success": True, "message": "Item removed from history"})
            elif _PRODUCT_KEY.match(path):
                if not m.remove(unquote(_PRODUCT_KEY.match(path).group(1))):
                    raise NotFoundError("Product not found")
                self._send_json(200, {"success": True, "message": "Product removed"})
            else:
                return False
            return True

        return False

    # ---- io -------------------------------------------------------------------

    def _read_json(self) -> dict:
        length = int(self.headers.get("Content-Length") or 0)
        if length <= 0:
            return {}
        if length > MAX_BODY_BYTES:
            raise ValidationError("Request body too large")
        raw = self.rfile.read(length)
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError(f"Invalid JSON body: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError("JSON body must be an object")
        return data

    def _send_json(self, status: int, payload: Any) -> None:
        data = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _send_text(self, status: int, text: str) -> None:
        data = text.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)


class ControlServer:
    """Owns the HTTP server and the thread serving it."""

    def __init__(self, monitor: StockMonitor, host: str = "127.0.0.1", port: int = 3000):
        self.monitor = monitor
        self.host = host
        self.port = port
        self.server: Optional[ThreadingHTTPServer] = None
        self.server_thread: Optional[threading.Thread] = None
        self.running = False

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self) -> str:
        """Start serving in a background thread and return the base URL."""
        if self.running:
            return self.base_url

        # One thread per request: /health stays responsive while another call waits on the monitor.
        self.server = ThreadingHTTPServer((self.host, self.port), ControlHandler)
        self.server.monitor = self.monitor  # type: ignore[attr-defined]
        # Port 0 asks the OS for a free port.
        self.port = self.server.server_address[1]
        self.server_thread = threading.Thread(target=self.server.serve_forever, name="control-server", daemon=True)
        self.server_thread.start()
        self.running = True
        logger.info("Control server started at %s", self.base_url)
        return self.base_url

    def stop(self) -> None:
        if self.server and self.running:
            self.server.shutdown()
            self.server.server_close()
            self.running = False
            logger.info("Control server stopped")


__all__ = ["ControlHandler", "ControlServer"]
