"""Local stand-in for the controller's HTTP contract.

Accepts the same ``POST /status`` and ``POST /send`` bodies the real controllers do and
records them instead of writing to a keyboard display. Used by ``vibenotify listen`` for
wiring up hooks by hand and by the test suite as a mock receiver.
"""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable


ACCEPTED_STATUSES = {"working", "stop", "stopped", "pending", "waiting"}


@dataclass(slots=True)
class ReceivedNotification:
    path: str
    payload: dict
    content_type: str
    raw_body: bytes
    received_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class ReceiverServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(
        self,
        server_address,
        handler_cls,
        on_receive: Callable[[ReceivedNotification], None] | None = None,
        delay: float = 0.0,
    ):
        super().__init__(server_address, handler_cls)
        self.received: list[ReceivedNotification] = []
        self.on_receive = on_receive
        self.delay = delay
        self._lock = threading.Lock()
        self._arrived = threading.Condition(self._lock)

    @property
    def base_url(self) -> str:
        host, port = self.server_address[:2]
        return f"http://{host}:{port}"

    def record(self, notification: ReceivedNotification) -> None:
        with self._arrived:
            self.received.append(notification)
            self._arrived.notify_all()
        if self.on_receive is not None:
            self.on_receive(notification)

    def wait_for(self, count: int = 1, timeout: float = 5.0) -> list[ReceivedNotification]:
        with self._arrived:
            self._arrived.wait_for(lambda: len(self.received) >= count, timeout=timeout)
            return list(self.received)


class ControllerHandler(BaseHTTPRequestHandler):
    server: ReceiverServer

    def log_message(self, format: str, *args):
        _ = (format, args)

    def _write_json(self, code: int, payload: dict) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _write_text(self, code: int, text: str) -> None:
        body = text.encode("utf-8")
        self.send_response(code)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self):
        if self.path == "/":
            self._write_text(200, "Controller Service\n")
            return
        self._write_json(404, {"error": "not_found"})

    def do_POST(self):
        content_length = int(self.headers.get("Content-Length", "0"))
        raw_body = self.rfile.read(content_length) if content_length else b""
        if self.server.delay:
            time.sleep(self.server.delay)

        try:
            # Undecodable bytes survive as surrogates.
            payload = json.loads(raw_body.decode("utf-8", "surrogateescape"))
        except json.JSONDecodeError:
            self._write_json(400, {"error": "bad_request", "reason": "body must be JSON"})
            return
        if not isinstance(payload, dict):
            self._write_json(400, {"error": "bad_request", "reason": "body must be an object"})
            return

        if self.path == "/status":
            status = payload.get("status")
            if status not in ACCEPTED_STATUSES:
                self._write_json(422, {"error": "unprocessable", "reason": f"unknown status: {status}"})
                return
            display = f"[{status}]"
        elif self.path == "/send":
            message = payload.get("message")
            if not isinstance(message, str):
                self._write_json(422, {"error": "unprocessable", "reason": "message must be a string"})
                return
            display = message
        else:
            self._write_json(404, {"error": "not_found"})
            return

        self.server.record(
            ReceivedNotification(
                path=self.path,
                payload=payload,
                content_type=self.headers.get("Content-Type", ""),
                raw_body=raw_body,
            )
        )
        self._write_json(200, {"status": "ok", "message": display})


def start_receiver(
    host: str = "127.0.0.1",
    port: int = 0,
    on_receive: Callable[[ReceivedNotification], None] | None = None,
    delay: float = 0.0,
) -> ReceiverServer:
    server = ReceiverServer((host, port), ControllerHandler, on_receive=on_receive, delay=delay)
    threading.Thread(target=server.serve_forever, name="vibenotify-receiver", daemon=True).start()
    return server


def run_receiver(
    host: str,
    port: int,
    on_receive: Callable[[ReceivedNotification], None] | None = None,
) -> None:
    server = ReceiverServer((host, port), ControllerHandler, on_receive=on_receive)
    try:
        server.serve_forever()
    finally:
        server.server_close()
