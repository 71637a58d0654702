"""Tests for CLI commands."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from vite_ssr._version import get_version
from vite_ssr.cli import app
from vite_ssr.host import ConfigEnv, ResolvedConfig


@pytest.fixture
def cli_runner() -> CliRunner:
    """Return a CLI test runner."""
    return CliRunner()


def test_version(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert get_version() in result.output


class TestTypesCommand:
    def test_writes_default_declarations(self, cli_runner: CliRunner, project: Path) -> None:
        result = cli_runner.invoke(app, ["types", "--root", str(project)])

        assert result.exit_code == 0, result.output
        declarations = (project / "ssr-env.d.ts").read_text()
        assert "declare module 'ssr:manifest'" in declarations
        assert "declare module 'ssr:template'" in declarations

    def test_uses_configured_names(self, cli_runner: CliRunner, project: Path) -> None:
        (project / "vite-ssr.toml").write_text(
            "[plugin]\nmanifestId = 'app:manifest'\ntemplateId = 'app:template'\n"
        )

        result = cli_runner.invoke(
            app, ["types", "--root", str(project), "--out", "types/virtual.d.ts"]
        )

        assert result.exit_code == 0, result.output
        declarations = (project / "types" / "virtual.d.ts").read_text()
        assert "declare module 'app:manifest'" in declarations
        assert "declare module 'app:template'" in declarations

    def test_bad_config_exits_with_error(self, cli_runner: CliRunner, project: Path) -> None:
        (project / "vite-ssr.toml").write_text("[plugin\n")

        result = cli_runner.invoke(app, ["types", "--root", str(project)])

        assert result.exit_code == 1
        assert "Invalid TOML" in result.output


class TestBuildCommand:
    def test_bundler_failure_exits_with_error(
        self, cli_runner: CliRunner, project: Path
    ) -> None:
        result = cli_runner.invoke(
            app,
            [
                "build",
                "--root",
                str(project),
                "--bundler",
                "vite-ssr-no-such-binary build",
            ],
        )

        assert result.exit_code == 1
        assert "Bundler not found" in result.output

    def test_mode_from_environment(
        self, cli_runner: CliRunner, project: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        calls: list[tuple[dict, str]] = []

        async def fake_build(self, user_config, mode="production"):
            calls.append((dict(user_config), mode))
            return ResolvedConfig.resolve(user_config, ConfigEnv(mode=mode, command="build"))

        monkeypatch.setattr("vite_ssr.cli.BuildRunner.build", fake_build)

        result = cli_runner.invoke(
            app,
            ["build", "--root", str(project), "--ssr", "src/entry.js"],
            env={"VITE_SSR_MODE": "staging"},
        )

        assert result.exit_code == 0, result.output
        ((user_config, mode),) = calls
        assert mode == "staging"
        assert user_config["build"] == {"ssr": "src/entry.js"}
