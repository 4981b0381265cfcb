from __future__ import annotations

from dataclasses import dataclass

from vibenotify.actions import NotifyRequest, decision_line, plan_request
from vibenotify.config import NotifierConfig
from vibenotify.dispatch import Dispatcher, make_dispatcher


@dataclass(slots=True)
class NotifyResult:
    exit_code: int
    stdout: str = ""
    request: NotifyRequest | None = None


class Notifier:
    def __init__(self, config: NotifierConfig, dispatcher: Dispatcher | None = None):
        self.config = config
        self.dispatcher = dispatcher or make_dispatcher(config.dispatch_mode, timeout=config.timeout)

    def run(self, action: str, message: str | None = None) -> NotifyResult:
        plan = plan_request(action, message, self.config.base_url, self.config.profile)
        if plan is None:
            return NotifyResult(exit_code=0)

        self.dispatcher.dispatch(plan.request)
        stdout = decision_line() if plan.route.echo_decision else ""
        return NotifyResult(exit_code=0, stdout=stdout, request=plan.request)
