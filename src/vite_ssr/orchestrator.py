"""
Two-phase production build.

When the host is asked for an SSR build, the orchestrator:

1. neutralizes the SSR build config (no public dir copy, no out dir clearing)
2. clears the out dir itself, once
3. runs a client sub-build into ``<outDir>/<publicDir name>`` with an SSR
   manifest enabled
4. harvests ``ssr-manifest.json`` and the HTML entry from the sub-build
   output into the artifact store, deleting them there
5. writes the transformed manifest and template next to the SSR bundle

after which the host carries on with the SSR build itself.

Phases: IDLE -> CLIENT_SUB_BUILD -> SSR_BUILD -> DONE. The sub-build is a
call into the ``BuildService`` collaborator; a failure there aborts the
whole build.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any

from vite_ssr.host import BuildService, ConfigEnv, ResolvedConfig, merge_config
from vite_ssr.logging import log_step
from vite_ssr.options import PluginOptions
from vite_ssr.outdir import prepare_out_dir
from vite_ssr.store import ArtifactStore
from vite_ssr.transforms import TransformPipeline

logger = logging.getLogger(__name__)

SSR_MANIFEST_FILE = "ssr-manifest.json"
DEFAULT_TEMPLATE_ENTRY = "index.html"
TEMPLATE_SUFFIX = ".html"
DEFAULT_CLIENT_DIR = "www"

# Reset of common SPA settings that rarely make sense for the SSR bundle
SSR_BUILD_DEFAULTS: dict[str, Any] = {
    "build": {
        "rollupOptions": {
            "output": {
                # keep the entry's own file name
                "entryFileNames": "[name].js",
            },
        },
    },
}

# Applied last: both builds share one out dir, the client build owns the
# public dir copy and the directory is cleared here, not by the host.
SSR_BUILD_REQUIRED: dict[str, Any] = {
    "publicDir": False,
    "build": {"emptyOutDir": False},
}


class BuildPhase(StrEnum):
    IDLE = "idle"
    CLIENT_SUB_BUILD = "client_sub_build"
    SSR_BUILD = "ssr_build"
    DONE = "done"


@dataclass
class BuildState:
    """Captured at config time, read-only afterwards."""

    is_ssr_build_requested: bool = False
    empty_out_dir: bool | None = None
    public_dir: str | None = None
    resolved_config: ResolvedConfig | None = None


class BuildOrchestrator:
    """Drives the client sub-build and harvests its artifacts into the store."""

    def __init__(
        self,
        options: PluginOptions,
        store: ArtifactStore,
        pipeline: TransformPipeline,
        build_service: BuildService | None = None,
    ):
        self.options = options
        self.store = store
        self.pipeline = pipeline
        self.build_service = build_service
        self.state = BuildState()
        self.phase = BuildPhase.IDLE

    # -------------------------------------------------------------------------
    # Config phase
    # -------------------------------------------------------------------------

    def configure(self, user_config: Mapping[str, Any], env: ConfigEnv) -> dict[str, Any] | None:
        """
        Detect an SSR production build and return the partial config to merge.

        Returns None (inert) unless ``build.ssr`` is an entry path, the host
        runs a production build and ``buildConfig`` is not False.
        Every call starts from a fresh state, so one plugin instance can run
        several builds.
        """
        self.state = BuildState()
        self.phase = BuildPhase.IDLE
        self.store.reset()

        if self.options.build_disabled:
            return None

        build = user_config.get("build") or {}
        if not env.is_production_build or not isinstance(build.get("ssr"), str):
            return None

        log_step(logger, "SSR build", f"building SSR bundle for {env.mode}...")

        self.state.is_ssr_build_requested = True
        self.state.empty_out_dir = build.get("emptyOutDir")
        public_dir = user_config.get("publicDir")
        self.state.public_dir = public_dir if isinstance(public_dir, str) else None

        return merge_config(
            merge_config(SSR_BUILD_DEFAULTS, self.options.build_config or {}),
            SSR_BUILD_REQUIRED,
        )

    def config_resolved(self, config: ResolvedConfig) -> None:
        self.state.resolved_config = config

    @property
    def active(self) -> bool:
        return self.state.is_ssr_build_requested

    # -------------------------------------------------------------------------
    # Build phase
    # -------------------------------------------------------------------------

    def client_out_dir(self, config: ResolvedConfig) -> Path:
        """Sub-build output: a folder named after the public dir inside the SSR out dir."""
        name = Path(self.state.public_dir or DEFAULT_CLIENT_DIR).name or DEFAULT_CLIENT_DIR
        return config.out_dir / name

    async def build_start(self) -> None:
        """Run the client sub-build and harvest before the SSR build emits anything."""
        if not self.active:
            return

        config = self.state.resolved_config
        if config is None:
            raise RuntimeError("build_start called before the config was resolved")
        if self.build_service is None:
            raise RuntimeError("SSR build requested but no build service is configured")

        log_step(logger, "SSR build", "generating the SSR target...")

        if config.build.write:
            prepare_out_dir(config.out_dir, self.state.empty_out_dir, config)

        client_dir = self.client_out_dir(config)

        self.phase = BuildPhase.CLIENT_SUB_BUILD
        await self.build_service.build(
            {
                "configFile": config.config_file,
                "root": str(config.root),
                "mode": config.mode,
                "build": {
                    "outDir": str(client_dir),
                    "ssr": False,
                    "ssrManifest": True,
                },
            }
        )

        await self.harvest(client_dir, config)
        self.phase = BuildPhase.SSR_BUILD

    def build_end(self) -> None:
        if self.phase is BuildPhase.SSR_BUILD:
            self.phase = BuildPhase.DONE

    # -------------------------------------------------------------------------
    # Harvest
    # -------------------------------------------------------------------------

    def template_entry(self, config: ResolvedConfig) -> str | None:
        """HTML entry name, or None when the build input is not a single .html file."""
        entry = config.build.entry or DEFAULT_TEMPLATE_ENTRY
        if isinstance(entry, str) and entry.endswith(TEMPLATE_SUFFIX):
            return entry
        logger.debug("Build input %r is not an HTML document, no template captured", entry)
        return None

    async def harvest(self, client_dir: Path, config: ResolvedConfig) -> None:
        """Move the manifest and template out of ``client_dir`` into the store."""
        target_dir = config.out_dir

        manifest_file = client_dir / SSR_MANIFEST_FILE
        if manifest_file.exists():
            raw = manifest_file.read_text(encoding="utf-8")
            manifest_file.unlink()

            self.store.manifest = json.loads(raw)
            await self.pipeline.apply_manifest(self.store)

            if self.options.write_manifest:
                self._write(
                    target_dir / manifest_file.name,
                    json.dumps(self.store.manifest, indent=2, ensure_ascii=False),
                )
        else:
            logger.debug("No %s in %s, manifest not captured", SSR_MANIFEST_FILE, client_dir)

        entry = self.template_entry(config)
        template_file = client_dir / entry if entry else None
        if template_file is not None and template_file.exists():
            raw = template_file.read_text(encoding="utf-8")
            template_file.unlink()

            self.store.template = raw
            await self.pipeline.apply_template(self.store)

            if self.options.write_manifest:
                self._write(target_dir / template_file.name, self.store.template)
        elif template_file is not None:
            logger.debug("No template at %s, template not captured", template_file)

    @staticmethod
    def _write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.debug("Wrote %s", path)
