from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import click

from pretty_autotest.config import ConfigError, Settings, resolve_settings
from pretty_autotest.interrupts import InterruptHandler
from pretty_autotest.lifecycle import Application
from pretty_autotest.log import configure_logging
from pretty_autotest.runtime.debounce import DebounceFilter
from pretty_autotest.runtime.executor import CommandRunner, RunGuard, TestExecutor, execute_command
from pretty_autotest.runtime.source import NotificationSource, WatchdogSource
from pretty_autotest.runtime.store import EventStore
from pretty_autotest.watch import WatcherLoop


@dataclass(slots=True)
class Wiring:
    application: Application
    loop: WatcherLoop
    interrupts: InterruptHandler
    executor: TestExecutor


def build_application(
    settings: Settings,
    *,
    source: NotificationSource | None = None,
    runner: CommandRunner = execute_command,
) -> Wiring:
    application = Application()
    executor = TestExecutor(
        RunGuard(),
        tool=settings.test_tool,
        args=settings.test_args,
        runner=runner,
    )
    loop = WatcherLoop(
        settings.watch_dir,
        executor=executor,
        debounce=DebounceFilter(EventStore(), pattern=settings.pattern),
        source=source if source is not None else WatchdogSource(recursive=settings.recursive),
    )
    interrupts = InterruptHandler(
        settings.watch_dir,
        executor=executor,
        exit_fn=application.exit,
    )
    application.register("Watcher Loop", loop)
    application.install_signal_handler(interrupts)
    return Wiring(application=application, loop=loop, interrupts=interrupts, executor=executor)


class ForwardingCommand(click.Command):
    """Stop option parsing at the first word that is not a ``pta`` option."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        return super().parse_args(ctx, split_forwarded_args(self, ctx, args))


def split_forwarded_args(
    command: click.Command, ctx: click.Context, args: list[str]
) -> list[str]:
    # Forwarded words such as -cover must not be read as clusters of short options.
    takes_value: dict[str, bool] = {}
    for param in command.get_params(ctx):
        if isinstance(param, click.Option):
            for name in (*param.opts, *param.secondary_opts):
                takes_value[name] = not param.is_flag and not param.count

    index = 0
    while index < len(args):
        arg = args[index]
        if arg == "--":
            return args
        name, has_value, _ = arg.partition("=")
        if name not in takes_value:
            break
        index += 1
        if takes_value[name] and not has_value:
            index += 1
    if index >= len(args):
        return args
    return [*args[:index], "--", *args[index:]]


@click.command(
    cls=ForwardingCommand,
    context_settings={"allow_interspersed_args": False},
    help=(
        "Watch a directory and re-run '<tool> test [TEST_ARGS]...' whenever a "
        "tracked source file is modified. Press CTRL-C once to re-run the tests, "
        "twice to exit."
    ),
)
@click.option(
    "watch_dir",
    "--dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Directory to watch (default: current directory).",
)
@click.option("tool", "--tool", type=str, default=None, help="Test tool executable (default: go).")
@click.option("pattern", "--pattern", type=str, default=None, help="Regex for tracked file names.")
@click.option(
    "config_path",
    "--config",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML settings file (default: .pta.yaml in the watched directory).",
)
@click.option(
    "no_recursive",
    "--no-recursive",
    is_flag=True,
    default=False,
    help="Only watch the top directory.",
)
@click.option("verbose", "-v", "--verbose", is_flag=True, default=False)
@click.argument("test_args", nargs=-1, type=click.UNPROCESSED)
def app(
    watch_dir: Path | None,
    tool: str | None,
    pattern: str | None,
    config_path: Path | None,
    no_recursive: bool,
    verbose: bool,
    test_args: tuple[str, ...],
) -> None:
    try:
        settings = resolve_settings(
            config_path=config_path,
            watch_dir=watch_dir,
            overrides={
                "test_tool": tool,
                "pattern": pattern,
                "recursive": False if no_recursive else None,
                "verbose": True if verbose else None,
                "test_args": list(test_args) if test_args else None,
            },
        )
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    configure_logging(settings.verbose)
    wiring = build_application(settings)
    exit_code = wiring.application.run()
    if exit_code:
        raise SystemExit(exit_code)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
