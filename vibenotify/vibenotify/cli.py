from __future__ import annotations

import builtins
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from vibenotify.actions import UsageError, build_dispatch_table, decision_line, encode_payload
from vibenotify.config import PROFILES, ConfigError, NotifierConfig, get_profile, load_notifier_config
from vibenotify.dispatch import Dispatcher, make_dispatcher
from vibenotify.notifier import Notifier
from vibenotify.receiver import ReceivedNotification, run_receiver

app = typer.Typer(help="Forward agent hook events to a local controller", add_completion=False)
console = Console()
err_console = Console(stderr=True)

PROFILE_HELP = f"Controller profile: {' or '.join(PROFILES)}"


def _build_dispatcher(config: NotifierConfig) -> Dispatcher:
    # A daemon thread would die with this process before the POST goes out.
    return make_dispatcher("process", timeout=config.timeout)


def _program_name() -> str:
    return Path(sys.argv[0]).name or "vibenotify"


# Everything after the action is message text, even words that look like options.
@app.command("notify", context_settings={"allow_interspersed_args": False, "ignore_unknown_options": True})
def notify(
    action: str = typer.Argument("", help="Hook action keyword"),
    message: list[str] = typer.Argument(None, help="Message text for send/msg"),
    profile: str = typer.Option("vibekeys", "--profile", help=PROFILE_HELP),
) -> None:
    try:
        config = load_notifier_config(profile)
    except ConfigError as exc:
        err_console.print(f"invalid configuration: {exc}", markup=False, highlight=False, soft_wrap=True)
        raise typer.Exit(1)

    notifier = Notifier(config, dispatcher=_build_dispatcher(config))
    text = " ".join(message) if message else None
    try:
        result = notifier.run(action, text)
    except UsageError:
        err_console.print(f"Usage: {_program_name()} {action} <message>", markup=False, highlight=False, soft_wrap=True)
        raise typer.Exit(1)

    # stdout carries nothing but the decision object; the hook caller parses it.
    if result.stdout:
        builtins.print(result.stdout, flush=True)
    if result.exit_code != 0:
        raise typer.Exit(result.exit_code)


@app.command("actions")
def actions(profile: str = typer.Option("vibekeys", "--profile", help=PROFILE_HELP)) -> None:
    try:
        controller = get_profile(profile)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc))

    table = Table(title=f"{controller.name} actions")
    table.add_column("action")
    table.add_column("path")
    table.add_column("body")
    table.add_column("stdout")
    for name, route in build_dispatch_table(controller).items():
        body = encode_payload({route.field: "<message>" if route.takes_message else route.value})
        table.add_row(name, route.path, body.decode("utf-8"), decision_line() if route.echo_decision else "")
    console.print(table)


@app.command("config")
def show_config(profile: str = typer.Option("vibekeys", "--profile", help=PROFILE_HELP)) -> None:
    try:
        config = load_notifier_config(profile)
    except ConfigError as exc:
        err_console.print(f"invalid configuration: {exc}", markup=False, highlight=False, soft_wrap=True)
        raise typer.Exit(1)
    console.print_json(
        data={
            "profile": config.profile.name,
            "url_env": config.profile.url_env,
            "base_url": config.base_url,
            "dispatch_mode": config.dispatch_mode,
            "timeout": config.timeout,
        }
    )


@app.command("listen")
def listen(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(57001, "--port"),
) -> None:
    def show(notification: ReceivedNotification) -> None:
        console.print(f"{notification.received_at} POST {notification.path} {notification.payload}", markup=False)

    console.print(f"vibenotify receiver listening on http://{host}:{port}")
    run_receiver(host=host, port=port, on_receive=show)


def _profile_alias(profile: str) -> None:
    argv = ["notify", "--profile", profile, *sys.argv[1:]]
    app(argv)


def ble_alias() -> None:
    _profile_alias("ble")


def vibekeys_alias() -> None:
    _profile_alias("vibekeys")


if __name__ == "__main__":
    app()
