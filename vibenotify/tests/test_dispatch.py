import os
import socket
import subprocess
import time

import pytest
import requests

from vibenotify import deliver
from vibenotify.actions import NotifyRequest
from vibenotify.dispatch import (
    DetachedProcessDispatcher,
    ThreadDispatcher,
    make_dispatcher,
    post_json,
)
from vibenotify.receiver import start_receiver


def _closed_port() -> int:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


def test_post_json_sends_compact_json_with_content_type():
    receiver = start_receiver()
    try:
        post_json(NotifyRequest(url=receiver.base_url + "/status", payload={"status": "working"}), timeout=5)
        received = receiver.wait_for(1)
    finally:
        receiver.shutdown()
        receiver.server_close()

    assert len(received) == 1
    assert received[0].path == "/status"
    assert received[0].content_type == "application/json"
    assert received[0].raw_body == b'{"status":"working"}'


def test_post_json_ignores_unreachable_receiver():
    request = NotifyRequest(url=f"http://127.0.0.1:{_closed_port()}/send", payload={"message": "notify"})
    assert post_json(request, timeout=1) is None


def test_post_json_discards_request_errors(monkeypatch):
    def fake_post(url, data, headers, timeout):
        raise requests.Timeout("slow controller")

    monkeypatch.setattr("vibenotify.dispatch.requests.post", fake_post)
    post_json(NotifyRequest(url="http://controller/send", payload={"message": "notify"}))


def test_post_json_does_not_inspect_error_status():
    receiver = start_receiver()
    try:
        # Unknown status values get a 422 from the receiver; delivery still returns quietly.
        post_json(NotifyRequest(url=receiver.base_url + "/status", payload={"status": "dancing"}), timeout=5)
    finally:
        receiver.shutdown()
        receiver.server_close()
    assert receiver.received == []


def test_thread_dispatcher_returns_before_response():
    receiver = start_receiver(delay=1.0)
    try:
        started = time.monotonic()
        ThreadDispatcher(timeout=5).dispatch(
            NotifyRequest(url=receiver.base_url + "/send", payload={"message": "tool use"})
        )
        elapsed = time.monotonic() - started
        received = receiver.wait_for(1, timeout=5)
    finally:
        receiver.shutdown()
        receiver.server_close()

    assert elapsed < 0.5
    assert received[0].payload == {"message": "tool use"}


def test_detached_dispatcher_spawns_deliver_module(monkeypatch):
    captured = {}

    def fake_popen(cmd, **kwargs):
        captured["cmd"] = cmd
        captured["kwargs"] = kwargs

    monkeypatch.setattr("vibenotify.dispatch.subprocess.Popen", fake_popen)
    dispatcher = DetachedProcessDispatcher(timeout=3, python="/usr/bin/python3")
    dispatcher.dispatch(NotifyRequest(url="http://127.0.0.1:57001/send", payload={"message": "hello world"}))

    assert captured["cmd"] == [
        "/usr/bin/python3",
        "-m",
        "vibenotify.deliver",
        "http://127.0.0.1:57001/send",
        '{"message":"hello world"}',
        "3",
    ]
    assert captured["kwargs"]["stdout"] is subprocess.DEVNULL
    assert captured["kwargs"]["stderr"] is subprocess.DEVNULL
    if os.name != "nt":
        assert captured["kwargs"]["start_new_session"] is True


def test_detached_dispatcher_ignores_spawn_failure(monkeypatch):
    def fake_popen(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr("vibenotify.dispatch.subprocess.Popen", fake_popen)
    DetachedProcessDispatcher(python="/missing/python").dispatch(
        NotifyRequest(url="http://127.0.0.1:57001/status", payload={"status": "stop"})
    )


def test_make_dispatcher():
    assert isinstance(make_dispatcher("thread", timeout=2), ThreadDispatcher)
    assert isinstance(make_dispatcher("process"), DetachedProcessDispatcher)
    with pytest.raises(ValueError):
        make_dispatcher("pigeon")


def test_deliver_main_posts_decoded_request(monkeypatch):
    captured = {}

    def fake_post_json(request, timeout):
        captured["request"] = request
        captured["timeout"] = timeout

    monkeypatch.setattr("vibenotify.deliver.post_json", fake_post_json)
    code = deliver.main(["http://127.0.0.1:3000/status", '{"status":"waiting"}', "4"])

    assert code == 0
    assert captured["request"].url == "http://127.0.0.1:3000/status"
    assert captured["request"].payload == {"status": "waiting"}
    assert captured["timeout"] == 4.0


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["http://127.0.0.1:3000/status"],
        ["http://127.0.0.1:3000/status", "not json"],
        ["http://127.0.0.1:3000/status", '["list"]'],
        ["http://127.0.0.1:3000/status", '{"status":"stop"}', "later"],
    ],
)
def test_deliver_main_ignores_malformed_arguments(monkeypatch, argv):
    calls = []
    monkeypatch.setattr("vibenotify.deliver.post_json", lambda request, timeout: calls.append(request))
    assert deliver.main(argv) == 0
    assert calls == []


def test_detached_dispatcher_carries_undecodable_bytes(monkeypatch):
    captured = {}
    monkeypatch.setattr("vibenotify.dispatch.subprocess.Popen", lambda cmd, **kwargs: captured.update(cmd=cmd))
    DetachedProcessDispatcher(python="/usr/bin/python3").dispatch(
        NotifyRequest(url="http://127.0.0.1:57001/send", payload={"message": "caf\udcff"})
    )
    assert captured["cmd"][4] == '{"message":"caf\udcff"}'


def test_deliver_main_restores_undecodable_bytes(monkeypatch):
    captured = {}
    monkeypatch.setattr("vibenotify.deliver.post_json", lambda request, timeout: captured.update(request=request))
    deliver.main(["http://127.0.0.1:57001/send", '{"message":"caf\udcff"}'])
    assert captured["request"].body() == b'{"message":"caf\xff"}'


def test_unencodable_payload_is_discarded(monkeypatch):
    calls = []
    monkeypatch.setattr("vibenotify.dispatch.requests.post", lambda *args, **kwargs: calls.append(args))
    monkeypatch.setattr("vibenotify.dispatch.subprocess.Popen", lambda cmd, **kwargs: calls.append(cmd))
    request = NotifyRequest(url="http://127.0.0.1:57001/send", payload={"message": "\ud800"})

    post_json(request)
    DetachedProcessDispatcher(python="/usr/bin/python3").dispatch(request)
    assert calls == []
