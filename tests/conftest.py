# tests/conftest.py
"""
Pytest configuration and fixtures.
Adds src/ to sys.path so `import proxyharvest` works without installing.
"""

import socket
import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
src_root = project_root / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))


class PageServer:
    """Serves canned pages: path -> (status, body bytes). Records User-Agent headers."""

    def __init__(self) -> None:
        self.routes = {}
        self.user_agents = []
        server = self

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self):
                server.user_agents.append(self.headers.get("User-Agent"))
                status, body = server.routes.get(self.path, (404, b"not found"))
                self.send_response(status)
                self.send_header("Content-Type", "text/html")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def log_message(self, *args):
                pass

        self._httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)

    @property
    def base_url(self) -> str:
        host, port = self._httpd.server_address[:2]
        return f"http://{host}:{port}"

    def url(self, path: str) -> str:
        return self.base_url + path

    def add(self, path: str, body, status: int = 200) -> str:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[path] = (status, body)
        return self.url(path)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._httpd.shutdown()
        self._httpd.server_close()


@pytest.fixture
def page_server():
    srv = PageServer()
    srv.start()
    try:
        yield srv
    finally:
        srv.stop()


@pytest.fixture
def closed_port_url():
    """A URL on a local port that nothing listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return f"http://127.0.0.1:{port}/list"


@pytest.fixture
def proxy_table():
    return PROXY_TABLE


PROXY_TABLE = """
<html><body>
<table id="ip_list">
  <tr class="head"><th>IP</th><th>Port</th><th>Location</th><th>Speed</th></tr>
  <tr class="row"><td>192.168.1.1</td><td>8080</td><td>Beijing</td><td><div title="0.5秒">0.5秒</div></td></tr>
  <tr class="row"><td>10.0.0.2</td><td>3128</td><td>Shanghai</td><td><div title="5秒">5秒</div></td></tr>
  <tr class="row"><td>not-an-ip</td><td>80</td><td>Nowhere</td><td><div title="0.1秒">0.1秒</div></td></tr>
  <tr class="row"><td>10.0.0.3</td><td>abc</td><td>Hangzhou</td><td><div title="0.2秒">0.2秒</div></td></tr>
  <tr class="row"><td>10.0.0.4</td><td>0</td><td>Hangzhou</td><td><div title="0.2秒">0.2秒</div></td></tr>
  <tr class="row"><td>10.0.0.5</td><td>1080</td><td></td><td><div title="fast">fast</div></td></tr>
</table>
</body></html>
"""
