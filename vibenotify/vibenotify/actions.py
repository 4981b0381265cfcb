from __future__ import annotations

import json
from dataclasses import dataclass

from vibenotify.config import ControllerProfile


PERMISSION_ASK = {"permissionDecision": "ask"}


class UsageError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class Route:
    path: str
    field: str
    value: str | None = None
    echo_decision: bool = False

    @property
    def takes_message(self) -> bool:
        return self.value is None


@dataclass(slots=True)
class NotifyRequest:
    url: str
    payload: dict[str, str]

    def body(self) -> bytes:
        return encode_payload(self.payload)


@dataclass(slots=True)
class Plan:
    action: str
    route: Route
    request: NotifyRequest


def _status(value: str, echo_decision: bool = False) -> Route:
    return Route(path="/status", field="status", value=value, echo_decision=echo_decision)


def _send(value: str | None, echo_decision: bool = False) -> Route:
    return Route(path="/send", field="message", value=value, echo_decision=echo_decision)


def build_dispatch_table(profile: ControllerProfile) -> dict[str, Route]:
    table = {
        "working": _status("working"),
        "stop": _status("stop"),
        profile.pending_label: _status(profile.pending_label),
        "notify": _send("notify"),
        "tool": _send("tool use", echo_decision=True),
        "post": _send("post tool"),
        "ask": _status(profile.pending_label, echo_decision=True),
    }
    for action in profile.message_actions:
        table[action] = _send(None)
    return table


def encode_payload(payload: dict[str, str]) -> bytes:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8", "surrogateescape")


def decision_line() -> str:
    return json.dumps(PERMISSION_ASK, separators=(",", ":"))


def plan_request(
    action: str,
    message: str | None,
    base_url: str,
    profile: ControllerProfile,
) -> Plan | None:
    """Resolve one action keyword into the request it should produce.

    Unknown actions resolve to ``None`` and are treated as a successful no-op so newer
    hook configurations keep working against older installs. Message actions require a
    non-empty message and raise ``UsageError`` otherwise.
    """
    route = build_dispatch_table(profile).get(action)
    if route is None:
        return None

    if route.takes_message:
        if not message:
            raise UsageError(f"{action} requires a message")
        value = message
    else:
        value = route.value

    request = NotifyRequest(url=base_url.rstrip("/") + route.path, payload={route.field: value})
    return Plan(action=action, route=route, request=request)
