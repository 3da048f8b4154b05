from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Iterator, List

import pytest


@dataclass
class RecordingServer:
    url: str
    received: List[dict] = field(default_factory=list)


def _handler_for(server: RecordingServer):
    class _Handler(BaseHTTPRequestHandler):
        """Answers POST /<code> with that status; /slow sleeps, /redirect sends a 302."""

        def do_POST(self) -> None:  # noqa: N802
            length = int(self.headers.get("Content-Length", "0"))
            server.received.append(
                {
                    "path": self.path,
                    "content_type": self.headers.get("Content-Type"),
                    "token": self.headers.get("X-Token"),
                    "body": self.rfile.read(length),
                }
            )
            if self.path == "/redirect":
                self.send_response(302)
                self.send_header("Location", "/200")
                self.send_header("Content-Length", "0")
                self.end_headers()
                return
            if self.path == "/slow":
                time.sleep(1.0)
                code = 200
            else:
                code = int(self.path.strip("/"))
            self.send_response(code)
            self.send_header("Content-Length", "0")
            self.end_headers()

        def log_message(self, format, *args) -> None:  # noqa: A002
            return

    return _Handler


@pytest.fixture()
def webhook_server() -> Iterator[RecordingServer]:
    recording = RecordingServer(url="")
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _handler_for(recording))
    recording.url = f"http://127.0.0.1:{httpd.server_address[1]}"
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield recording
    finally:
        httpd.shutdown()
        httpd.server_close()
