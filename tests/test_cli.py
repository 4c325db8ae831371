from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
from click.testing import CliRunner

from pretty_autotest import cli
from pretty_autotest.config import Settings
from pretty_autotest.watch import WatcherLoop


class _FakeApplication:
    def __init__(self, exit_code: int = 0) -> None:
        self.exit_code = exit_code
        self.ran = False

    def run(self) -> int:
        self.ran = True
        return self.exit_code


def _capture_build(monkeypatch: object, exit_code: int = 0) -> list[Settings]:
    captured: list[Settings] = []

    def fake_build(settings: Settings, **_: object) -> cli.Wiring:
        captured.append(settings)
        return cli.Wiring(
            application=_FakeApplication(exit_code),  # type: ignore[arg-type]
            loop=None,  # type: ignore[arg-type]
            interrupts=None,  # type: ignore[arg-type]
            executor=None,  # type: ignore[arg-type]
        )

    monkeypatch.setattr(cli, "build_application", fake_build)  # type: ignore[attr-defined]
    return captured


def test_forwards_trailing_arguments_to_test_command(monkeypatch: object, tmp_path: Path) -> None:
    captured = _capture_build(monkeypatch)
    runner = CliRunner()

    result = runner.invoke(
        cli.app,
        ["--dir", str(tmp_path), "-v", "./...", "-run", "TestParse", "-count=1"],
    )

    assert result.exit_code == 0, result.output
    [settings] = captured
    assert settings.watch_dir == tmp_path
    assert settings.verbose is True
    assert settings.test_args == ["./...", "-run", "TestParse", "-count=1"]


def test_options_override_settings_file(monkeypatch: object, tmp_path: Path) -> None:
    (tmp_path / ".pta.yaml").write_text(
        "test_tool: cargo\ntest_args: ['--quiet']\n", encoding="utf-8"
    )
    captured = _capture_build(monkeypatch)
    runner = CliRunner()

    result = runner.invoke(
        cli.app,
        ["--dir", str(tmp_path), "--tool", "go", "--pattern", r"\.go$", "--no-recursive"],
    )

    assert result.exit_code == 0, result.output
    [settings] = captured
    assert settings.test_tool == "go"
    assert settings.test_args == ["--quiet"]
    assert settings.pattern == r"\.go$"
    assert settings.recursive is False


def test_invalid_settings_file_is_reported(monkeypatch: object, tmp_path: Path) -> None:
    config = tmp_path / "broken.yaml"
    config.write_text("pattern: '('\n", encoding="utf-8")
    _capture_build(monkeypatch)
    runner = CliRunner()

    result = runner.invoke(cli.app, ["--dir", str(tmp_path), "--config", str(config)])

    assert result.exit_code == 1
    assert "pattern" in result.output


def test_nonzero_application_exit_code_is_propagated(monkeypatch: object, tmp_path: Path) -> None:
    _capture_build(monkeypatch, exit_code=1)
    runner = CliRunner()

    result = runner.invoke(cli.app, ["--dir", str(tmp_path)])

    assert result.exit_code == 1


def test_build_application_wires_loop_and_interrupts(
    tmp_path: Path, fake_source: Any, fake_runner: Any
) -> None:
    settings = Settings(watch_dir=tmp_path, test_tool="cargo", test_args=["--quiet"])
    runner = fake_runner

    wiring = cli.build_application(settings, source=fake_source, runner=runner)

    assert isinstance(wiring.loop, WatcherLoop)
    assert wiring.loop.watch_dir == tmp_path
    assert wiring.interrupts.watch_dir == tmp_path

    wiring.executor.try_run(tmp_path)
    wiring.executor.wait(2.0)
    assert runner.calls == [(["cargo", "test", "--quiet"], tmp_path)]


def test_watch_failure_exits_with_error(
    tmp_path: Path, make_source: Callable[..., Any], fake_runner: Any
) -> None:
    settings = Settings(watch_dir=tmp_path)
    source = make_source(fail_on_watch=FileNotFoundError("gone"))

    wiring = cli.build_application(settings, source=source, runner=fake_runner)
    exit_code = wiring.application.run()

    assert exit_code == 1


def test_single_dash_test_flags_are_forwarded_verbatim(monkeypatch: object, tmp_path: Path) -> None:
    captured = _capture_build(monkeypatch)
    runner = CliRunner()

    result = runner.invoke(
        cli.app,
        ["--dir", str(tmp_path), "-cover", "-coverprofile=c.out", "-vet=off", "./..."],
    )

    assert result.exit_code == 0, result.output
    [settings] = captured
    assert settings.verbose is False
    assert settings.test_args == ["-cover", "-coverprofile=c.out", "-vet=off", "./..."]


def test_own_flags_after_forwarded_words_belong_to_test_command(
    monkeypatch: object, tmp_path: Path
) -> None:
    captured = _capture_build(monkeypatch)
    runner = CliRunner()

    result = runner.invoke(
        cli.app, ["-v", "--dir", str(tmp_path), "-cover", "-v", "--tool", "x"]
    )

    assert result.exit_code == 0, result.output
    [settings] = captured
    assert settings.verbose is True
    assert settings.test_tool == "go"
    assert settings.test_args == ["-cover", "-v", "--tool", "x"]


def test_explicit_separator_is_kept_out_of_test_args(monkeypatch: object, tmp_path: Path) -> None:
    captured = _capture_build(monkeypatch)
    runner = CliRunner()

    result = runner.invoke(cli.app, ["--dir", str(tmp_path), "--", "-verbose"])

    assert result.exit_code == 0, result.output
    [settings] = captured
    assert settings.verbose is False
    assert settings.test_args == ["-verbose"]


def test_split_forwarded_args_marks_first_unknown_word() -> None:
    ctx = click.Context(cli.app, info_name="pta")

    assert cli.split_forwarded_args(cli.app, ctx, ["--tool", "go", "-cover"]) == [
        "--tool",
        "go",
        "--",
        "-cover",
    ]
    assert cli.split_forwarded_args(cli.app, ctx, ["--pattern=x", "-v"]) == ["--pattern=x", "-v"]
    assert cli.split_forwarded_args(cli.app, ctx, []) == []
