from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler
from threading import Thread, Lock
from pathlib import Path
import zipfile
import json
import time
import io

import pytest

from typing import Dict, List


def pytest_addoption(parser):
    parser.addoption("--runslow", action="store_true", default=False, help="run slow tests")

def pytest_configure(config):
    config.addinivalue_line("markers", "slow: mark test as slow to run")

def pytest_collection_modifyitems(config, items):

    if config.getoption("--runslow"):
        return
    
    skip_slow = pytest.mark.skip(reason="need --runslow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


class FixtureServer:
    """A local HTTP server serving in-memory files, every other path is not found. It
    records the requested paths and the maximum number of requests served at once.
    """

    def __init__(self) -> None:

        self.files: Dict[str, bytes] = {}
        self.redirects: Dict[str, str] = {}
        self.requests: List[str] = []
        self.delay = 0.0
        self.active = 0
        self.max_active = 0
        self.lock = Lock()

        server = self

        class Handler(BaseHTTPRequestHandler):

            protocol_version = "HTTP/1.1"

            def do_GET(self):
                server.handle(self)

            def log_message(self, format, *args):
                pass

        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self.httpd.daemon_threads = True
        self.thread = Thread(target=self.httpd.serve_forever, name="Fixture Server", daemon=True)

    @property
    def url(self) -> str:
        host, port = self.httpd.server_address[:2]
        return f"http://{host}:{port}"

    def add(self, path: str, data: bytes) -> str:
        self.files[path] = data
        return f"{self.url}{path}"

    def add_json(self, path: str, obj) -> str:
        return self.add(path, json.dumps(obj).encode())

    def redirect(self, path: str, location: str) -> str:
        self.redirects[path] = location
        return f"{self.url}{path}"

    def count(self, path: str) -> int:
        with self.lock:
            return self.requests.count(path)

    def handle(self, req: BaseHTTPRequestHandler) -> None:

        with self.lock:
            self.requests.append(req.path)
            self.active += 1
            self.max_active = max(self.max_active, self.active)

        try:

            if self.delay:
                time.sleep(self.delay)

            location = self.redirects.get(req.path)
            if location is not None:
                req.send_response(302)
                if location:
                    req.send_header("Location", location)
                req.send_header("Content-Length", "0")
                req.end_headers()
                return

            data = self.files.get(req.path)
            if data is None:
                req.send_response(404)
                req.send_header("Content-Length", "0")
                req.end_headers()
                return

            req.send_response(200)
            req.send_header("Content-Length", str(len(data)))
            req.end_headers()
            req.wfile.write(data)

        finally:
            with self.lock:
                self.active -= 1


@pytest.fixture
def server():
    """This fixture runs a local fixture server for the duration of a test.
    """
    server = FixtureServer()
    server.thread.start()
    try:
        yield server
    finally:
        server.httpd.shutdown()
        server.httpd.server_close()


@pytest.fixture
def tmp_context(tmp_path):
    """This fixture is used to create a game's install context in a temporary directory.
    """
    from craftlaunch.standard import Context
    return Context(tmp_path / "game")


def make_zip(files: Dict[str, bytes]) -> bytes:
    """Build a zip archive in memory with the given members.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def write_json(file: Path, obj) -> None:
    file.parent.mkdir(parents=True, exist_ok=True)
    with file.open("wt", encoding="utf-8") as fp:
        json.dump(obj, fp)
