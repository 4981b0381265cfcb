from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass


DEFAULT_TIMEOUT_SECONDS = 10.0


class ConfigError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class ControllerProfile:
    name: str
    url_env: str
    default_url: str
    pending_label: str
    message_actions: tuple[str, ...] = ()


@dataclass(slots=True)
class NotifierConfig:
    profile: ControllerProfile
    base_url: str
    # Only the detached process outlives a short-lived CLI; "thread" is for in-process callers.
    dispatch_mode: str = "process"
    timeout: float = DEFAULT_TIMEOUT_SECONDS


PROFILES: dict[str, ControllerProfile] = {
    "ble": ControllerProfile(
        name="ble",
        url_env="BLE_URL",
        default_url="http://127.0.0.1:3000",
        pending_label="waiting",
    ),
    "vibekeys": ControllerProfile(
        name="vibekeys",
        url_env="VIBEKEYS_APP_URL",
        default_url="http://127.0.0.1:57001",
        pending_label="pending",
        message_actions=("send", "msg"),
    ),
}


def get_profile(name: str) -> ControllerProfile:
    try:
        return PROFILES[name]
    except KeyError:
        raise ConfigError(f"Unknown controller profile: {name}") from None


def _parse_timeout(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"VIBENOTIFY_TIMEOUT must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError("VIBENOTIFY_TIMEOUT must be positive")
    return value


def load_notifier_config(profile_name: str, environ: Mapping[str, str] | None = None) -> NotifierConfig:
    env = os.environ if environ is None else environ
    profile = get_profile(profile_name)

    # An empty variable counts as unset.
    base_url = env.get(profile.url_env) or profile.default_url

    raw_timeout = env.get("VIBENOTIFY_TIMEOUT")
    timeout = _parse_timeout(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT_SECONDS

    return NotifierConfig(
        profile=profile,
        base_url=base_url.rstrip("/"),
        timeout=timeout,
    )
