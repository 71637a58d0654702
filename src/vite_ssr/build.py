"""
Production build host.

``BuildRunner`` runs the plugin hooks around one bundler build, the way the
host build tool does:

    config -> config_resolved -> build_start -> bundle -> build_end

``SubprocessBuildService`` is the bundler: it runs the bundler CLI
(``npx vite build`` by default). Settings with a CLI flag are passed as
flags; the full inline config and the virtual modules are written to a JSON
bridge file whose path is exported as ``VITE_SSR_BRIDGE``. The project's
bundler config reads that file to merge the inline config and alias the
virtual module ids to the generated files.

Usage::

    runner = BuildRunner([ssr()], SubprocessBuildService(cwd=root), root=root)
    asyncio.run(runner.build({"build": {"ssr": "src/entry-server.js"}}))
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from vite_ssr.errors import BuildError, ErrorContext
from vite_ssr.host import (
    BuildService,
    ConfigEnv,
    ModuleGraph,
    PluginContainer,
    ResolvedConfig,
    resolve_plugin_config,
)
from vite_ssr.logging import log_step
from vite_ssr.transforms import maybe_await

logger = logging.getLogger(__name__)

BRIDGE_ENV = "VITE_SSR_BRIDGE"
BRIDGE_DIR = ".vite-ssr"
DEFAULT_BUNDLER_COMMAND = ("npx", "vite", "build")
DEFAULT_TIMEOUT = 600

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


# =============================================================================
# Bundler CLI adapter
# =============================================================================


class SubprocessBuildService:
    """Runs the bundler CLI once per ``build`` call."""

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_BUNDLER_COMMAND,
        cwd: Path | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
        env: Mapping[str, str] | None = None,
    ):
        self.command = list(command)
        self.cwd = cwd or Path.cwd()
        self.timeout = timeout
        self.env = dict(env or {})
        self._calls = 0

    def command_for(self, inline_config: Mapping[str, Any]) -> list[str]:
        """Translate the settings the bundler CLI has flags for."""
        cmd = list(self.command)
        build = inline_config.get("build") or {}

        if config_file := inline_config.get("configFile"):
            cmd += ["--config", str(config_file)]
        if mode := inline_config.get("mode"):
            cmd += ["--mode", str(mode)]
        if out_dir := build.get("outDir"):
            cmd += ["--outDir", str(out_dir)]
        if isinstance(build.get("ssr"), str):
            cmd += ["--ssr", build["ssr"]]
        if build.get("ssrManifest") is True:
            cmd.append("--ssrManifest")
        if build.get("emptyOutDir") is True:
            cmd.append("--emptyOutDir")
        return cmd

    def write_bridge(self, inline_config: Mapping[str, Any], modules: ModuleGraph | None) -> Path:
        """Write the inline config and virtual module sources for the bundler config to read."""
        self._calls += 1
        bridge_dir = self.cwd / BRIDGE_DIR
        virtual_dir = bridge_dir / "virtual"
        virtual_dir.mkdir(parents=True, exist_ok=True)

        virtual_modules: dict[str, str] = {}
        if modules is not None:
            for module_id in modules.virtual_ids():
                source = modules.load(module_id)
                if source is None:
                    continue
                path = virtual_dir / f"{_UNSAFE_CHARS.sub('_', module_id)}.mjs"
                path.write_text(source, encoding="utf-8")
                virtual_modules[module_id] = str(path)

        bridge = bridge_dir / f"bridge-{self._calls}.json"
        bridge.write_text(
            json.dumps(
                {"inlineConfig": inline_config, "virtualModules": virtual_modules},
                indent=2,
                default=str,
            ),
            encoding="utf-8",
        )
        return bridge

    async def build(
        self,
        inline_config: Mapping[str, Any],
        *,
        modules: ModuleGraph | None = None,
    ) -> None:
        bridge = self.write_bridge(inline_config, modules)
        cmd = self.command_for(inline_config)
        env = {**os.environ, **self.env, BRIDGE_ENV: str(bridge)}

        logger.info("Running bundler: %s", " ".join(cmd))
        context = ErrorContext({"command": " ".join(cmd)})

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=str(self.cwd),
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            raise BuildError("Bundler timed out", context=context) from e
        except FileNotFoundError as e:
            raise BuildError(f"Bundler not found: {cmd[0]}", context=context) from e

        if result.stdout:
            logger.debug(result.stdout)
        if result.returncode != 0:
            logger.error("Bundler failed:\n%s", result.stderr)
            raise BuildError(
                "Bundler failed",
                returncode=result.returncode,
                stderr=result.stderr,
                context=context,
            )


# =============================================================================
# Build runner
# =============================================================================


class BuildRunner:
    """Runs plugin hooks around a single bundler build."""

    def __init__(
        self,
        plugins: Sequence[Any],
        service: BuildService,
        root: Path | str | None = None,
        config_file: str | None = None,
    ):
        self.plugins = list(plugins)
        self.service = service
        self.root = root
        self.config_file = config_file

        # plugins that trigger nested builds use the same bundler
        for plugin in self.plugins:
            if hasattr(plugin, "build_service") and plugin.build_service is None:
                plugin.build_service = service

    async def build(
        self, user_config: Mapping[str, Any], mode: str = "production"
    ) -> ResolvedConfig:
        env = ConfigEnv(mode=mode, command="build")
        merged, resolved = resolve_plugin_config(
            self.plugins, user_config, env, self.root, self.config_file
        )
        container = PluginContainer(self.plugins)

        for plugin in container.plugins:
            hook = getattr(plugin, "build_start", None)
            if hook is not None:
                await maybe_await(hook())

        inline_config = {
            **merged,
            "root": str(resolved.root),
            "mode": resolved.mode,
            "configFile": resolved.config_file,
        }
        target = resolved.build.ssr if isinstance(resolved.build.ssr, str) else "client"
        log_step(logger, "Bundling", f"{target} -> {resolved.out_dir}")
        await self.service.build(inline_config, modules=container)

        for plugin in container.plugins:
            hook = getattr(plugin, "build_end", None)
            if hook is not None:
                await maybe_await(hook())

        return resolved
