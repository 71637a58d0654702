"""
vite-ssr CLI.

Commands:
- build: client sub-build + SSR build through the bundler CLI
- dev: development server rendering pages through the SSR entry
- types: write type declarations for the virtual modules
"""

from __future__ import annotations

import asyncio
import shlex
from pathlib import Path

import typer
from rich.console import Console

from vite_ssr._version import get_version
from vite_ssr.build import DEFAULT_BUNDLER_COMMAND, BuildRunner, SubprocessBuildService
from vite_ssr.config import ProjectConfig, load_project_config
from vite_ssr.dev_server import create_dev_server
from vite_ssr.errors import BuildError, ConfigError
from vite_ssr.host import merge_config
from vite_ssr.logging import setup_logging
from vite_ssr.plugin import SSRPlugin
from vite_ssr.virtual import render_type_declarations

app = typer.Typer(
    help="Server-side rendering for front-end builds: two-phase builds and an SSR dev server.",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"vite-ssr {get_version()}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: str = typer.Option("INFO", "--log-level", envvar="VITE_SSR_LOG_LEVEL"),
    log_file: Path | None = typer.Option(None, "--log-file", help="Also write JSONL logs here"),
    version: bool = typer.Option(
        False, "--version", callback=version_callback, is_eager=True, help="Show version"
    ),
) -> None:
    setup_logging(log_level, log_file)


def _load(config: Path | None, root: Path | None) -> ProjectConfig:
    try:
        return load_project_config(config, root)
    except ConfigError as e:
        console.print(f"[red]x[/] {e}")
        raise typer.Exit(code=1)


@app.command("build")
def build_command(
    config: Path | None = typer.Option(None, "--config", "-c", help="vite-ssr.toml path"),
    root: Path | None = typer.Option(None, "--root", help="Project root"),
    mode: str = typer.Option("production", "--mode", "-m", envvar="VITE_SSR_MODE"),
    ssr_entry: str | None = typer.Option(None, "--ssr", help="SSR entry (overrides build.ssr)"),
    bundler: str = typer.Option(
        " ".join(DEFAULT_BUNDLER_COMMAND), "--bundler", help="Bundler build command"
    ),
) -> None:
    """
    Build the client bundle, then the SSR bundle.

    Examples:
        vite-ssr build --ssr src/entry-server.js
        vite-ssr build -c vite-ssr.toml --bundler "pnpm exec vite build"
    """
    project = _load(config, root)
    user_config = project.user_config
    if ssr_entry:
        user_config = merge_config(user_config, {"build": {"ssr": ssr_entry}})

    service = SubprocessBuildService(command=shlex.split(bundler), cwd=project.root)
    runner = BuildRunner([SSRPlugin(project.options)], service, root=project.root)

    try:
        resolved = asyncio.run(runner.build(user_config, mode=mode))
    except BuildError as e:
        console.print(f"[red]x[/] {e}")
        if e.stderr:
            console.print(e.stderr, markup=False, highlight=False)
        raise typer.Exit(code=1)

    console.print(f"[bold green]✓[/] Built into {resolved.out_dir}")


@app.command("dev")
def dev_command(
    config: Path | None = typer.Option(None, "--config", "-c", help="vite-ssr.toml path"),
    root: Path | None = typer.Option(None, "--root", help="Project root"),
    host: str | None = typer.Option(None, "--host", help="Host to bind to"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind to"),
    mode: str = typer.Option("development", "--mode", "-m", envvar="VITE_SSR_MODE"),
) -> None:
    """Start the development server with SSR page rendering."""
    project = _load(config, root)
    server = create_dev_server(
        project.user_config, [SSRPlugin(project.options)], root=project.root, mode=mode
    )
    server.run(host=host, port=port)


@app.command("types")
def types_command(
    out: Path = typer.Option(Path("ssr-env.d.ts"), "--out", "-o", help="Declaration file"),
    config: Path | None = typer.Option(None, "--config", "-c", help="vite-ssr.toml path"),
    root: Path | None = typer.Option(None, "--root", help="Project root"),
) -> None:
    """Write TypeScript declarations for the virtual manifest and template modules."""
    project = _load(config, root)
    target = out if out.is_absolute() else project.root / out
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        render_type_declarations(project.options.manifest_id, project.options.template_id),
        encoding="utf-8",
    )
    console.print(f"[bold green]✓[/] Wrote {target}")


if __name__ == "__main__":
    app()
