"""Child-process side of the detached dispatcher.

Invoked as ``python -m vibenotify.deliver URL BODY [TIMEOUT]`` with stdio detached. It
posts once and exits 0 whatever happens.
"""

from __future__ import annotations

import json
import sys

from vibenotify.actions import NotifyRequest
from vibenotify.config import DEFAULT_TIMEOUT_SECONDS
from vibenotify.dispatch import post_json


def parse_args(argv: list[str]) -> tuple[NotifyRequest, float] | None:
    if len(argv) < 2:
        return None
    try:
        payload = json.loads(argv[1])
        timeout = float(argv[2]) if len(argv) > 2 else DEFAULT_TIMEOUT_SECONDS
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    return NotifyRequest(url=argv[0], payload=payload), timeout


def main(argv: list[str] | None = None) -> int:
    parsed = parse_args(sys.argv[1:] if argv is None else argv)
    if parsed is not None:
        request, timeout = parsed
        post_json(request, timeout=timeout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
