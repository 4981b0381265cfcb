from __future__ import annotations

import os
import subprocess
import sys
import threading
from typing import Protocol

import requests

from vibenotify.actions import NotifyRequest
from vibenotify.config import DEFAULT_TIMEOUT_SECONDS


JSON_HEADERS = {"Content-Type": "application/json"}


class Dispatcher(Protocol):
    def dispatch(self, request: NotifyRequest) -> None: ...


def post_json(request: NotifyRequest, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
    try:
        requests.post(request.url, data=request.body(), headers=JSON_HEADERS, timeout=timeout)
    except (requests.RequestException, ValueError):
        # Best-effort delivery: the receiver being down or an unencodable body never reaches the caller.
        return


class ThreadDispatcher:
    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.timeout = timeout

    def dispatch(self, request: NotifyRequest) -> None:
        worker = threading.Thread(
            target=post_json,
            args=(request, self.timeout),
            name="vibenotify-dispatch",
            daemon=True,
        )
        worker.start()


class DetachedProcessDispatcher:
    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS, python: str | None = None):
        self.timeout = timeout
        self.python = python or sys.executable

    def _deliver_cmd(self, request: NotifyRequest) -> list[str]:
        return [
            self.python,
            "-m",
            "vibenotify.deliver",
            request.url,
            request.body().decode("utf-8", "surrogateescape"),
            str(self.timeout),
        ]

    def dispatch(self, request: NotifyRequest) -> None:
        kwargs: dict = {
            "stdin": subprocess.DEVNULL,
            "stdout": subprocess.DEVNULL,
            "stderr": subprocess.DEVNULL,
            "close_fds": True,
        }
        if os.name == "nt":
            kwargs["creationflags"] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True
        try:
            subprocess.Popen(self._deliver_cmd(request), **kwargs)
        except (OSError, ValueError):
            return


def make_dispatcher(mode: str, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Dispatcher:
    if mode == "process":
        return DetachedProcessDispatcher(timeout=timeout)
    if mode == "thread":
        return ThreadDispatcher(timeout=timeout)
    raise ValueError(f"Unsupported dispatch mode: {mode}")
