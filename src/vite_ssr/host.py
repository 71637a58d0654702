"""
Host build tool contracts.

The SSR core never bundles or serves anything itself. It talks to the
host through the types in this module:

- ``ConfigEnv`` / ``ResolvedConfig``: the configuration snapshot
- ``merge_config``: the host's deep-merge rule for partial configs
- ``BuildService``: something that can run a build (the bundler)
- ``ModuleGraph``: virtual module resolution offered to the bundler
- ``DevServerContext``: what a dev server exposes to plugins
- ``MiddlewareStage``: explicit dev middleware ordering

``vite_ssr.build`` and ``vite_ssr.dev_server`` provide the concrete hosts.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from enum import IntEnum
from pathlib import Path
from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Command = Literal["build", "serve"]

DEFAULT_OUT_DIR = "dist"
DEFAULT_PUBLIC_DIR = "public"
DEFAULT_DEV_PORT = 5173


# =============================================================================
# Configuration
# =============================================================================


class ConfigEnv(BaseModel):
    """Mode and command the host was started with."""

    model_config = ConfigDict(frozen=True)

    mode: str = "development"
    command: Command = "serve"

    @property
    def is_production_build(self) -> bool:
        return self.mode == "production" and self.command == "build"


class BuildOptions(BaseModel):
    """Resolved ``build`` section. Accepts camelCase keys from user config."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    out_dir: str = DEFAULT_OUT_DIR
    ssr: bool | str = False
    empty_out_dir: bool | None = None
    write: bool = True
    ssr_manifest: bool = False
    input: str | list[str] | dict[str, str] | None = None
    rollup_options: dict[str, Any] = Field(default_factory=dict)

    @property
    def entry(self) -> str | list[str] | dict[str, str] | None:
        """Build input, falling back to ``rollupOptions.input``."""
        if self.input is not None:
            return self.input
        return self.rollup_options.get("input")


class ServerOptions(BaseModel):
    """Resolved ``server`` section."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    host: str = "127.0.0.1"
    port: int = DEFAULT_DEV_PORT
    headers: dict[str, str] = Field(default_factory=dict)


class ResolvedConfig(BaseModel):
    """Frozen configuration snapshot, available after the host resolves it."""

    model_config = ConfigDict(frozen=True)

    root: Path
    config_file: str | None = None
    mode: str = "development"
    command: Command = "serve"
    public_dir: str | None = None
    build: BuildOptions = Field(default_factory=BuildOptions)
    server: ServerOptions = Field(default_factory=ServerOptions)

    @classmethod
    def resolve(
        cls,
        user_config: Mapping[str, Any],
        env: ConfigEnv,
        root: Path | str | None = None,
        config_file: str | None = None,
    ) -> ResolvedConfig:
        """Resolve a camelCase user config mapping against a project root."""
        project_root = Path(user_config.get("root") or root or Path.cwd()).resolve()

        public_dir_value = user_config.get("publicDir", DEFAULT_PUBLIC_DIR)
        public_dir = str(project_root / public_dir_value) if public_dir_value else None

        return cls(
            root=project_root,
            config_file=user_config.get("configFile") or config_file,
            mode=env.mode,
            command=env.command,
            public_dir=public_dir,
            build=BuildOptions.model_validate(user_config.get("build") or {}),
            server=ServerOptions.model_validate(user_config.get("server") or {}),
        )

    @property
    def out_dir(self) -> Path:
        """Absolute build output directory."""
        return (self.root / self.build.out_dir).resolve()

    def is_inside_root(self, path: Path) -> bool:
        resolved = path.resolve()
        return resolved != self.root and resolved.is_relative_to(self.root)


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list | tuple):
        return list(value)
    return [value]


def merge_config(defaults: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """
    Deep-merge two config mappings, ``overrides`` winning.

    - nested mappings merge recursively
    - lists on either side concatenate
    - ``None`` in ``overrides`` leaves the default in place
    - anything else in ``overrides`` replaces the default (including ``False``)

    Neither input is mutated.
    """
    merged: dict[str, Any] = copy.deepcopy(dict(defaults))
    for key, value in overrides.items():
        if value is None:
            continue
        existing = merged.get(key)
        if existing is None:
            merged[key] = copy.deepcopy(value)
        elif isinstance(existing, list | tuple) or isinstance(value, list | tuple):
            merged[key] = _as_list(existing) + copy.deepcopy(_as_list(value))
        elif isinstance(existing, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_config(existing, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


# =============================================================================
# Collaborators
# =============================================================================


@runtime_checkable
class ModuleGraph(Protocol):
    """Module resolution the host offers the bundler before its own."""

    def resolve_id(self, source: str) -> str | None: ...

    def load(self, module_id: str) -> str | None: ...

    def virtual_ids(self) -> list[str]: ...


class BuildService(Protocol):
    """Runs one bundler build with an inline (camelCase) config."""

    async def build(
        self,
        inline_config: Mapping[str, Any],
        *,
        modules: ModuleGraph | None = None,
    ) -> None: ...


class MiddlewareStage(IntEnum):
    """
    Where a dev middleware sits relative to the host's own.

    Lower stages wrap higher ones: ``PRE`` sees requests first, ``POST``
    is innermost and only sees what the host middlewares let through.
    """

    PRE = 0
    INTERNAL = 1
    POST = 2


class DevServerContext(Protocol):
    """What a dev server hands to a plugin's ``configure_server`` hook."""

    config: ResolvedConfig

    async def transform_index_html(
        self, url: str, html: str, original_url: str | None = None
    ) -> str: ...

    async def ssr_load_module(self, path: str) -> Any: ...

    def use(
        self, middleware: type, stage: MiddlewareStage = MiddlewareStage.POST, **options: Any
    ) -> None: ...


# =============================================================================
# Plugin container
# =============================================================================

_ENFORCE_ORDER = {"pre": 0, None: 1, "post": 2}


def sort_plugins(plugins: Sequence[Any]) -> list[Any]:
    """Order plugins pre -> normal -> post, keeping declaration order within a group."""
    return sorted(plugins, key=lambda p: _ENFORCE_ORDER.get(getattr(p, "enforce", None), 1))


class PluginContainer:
    """Chains ``resolve_id``/``load`` across plugins; first answer wins."""

    def __init__(self, plugins: Sequence[Any]):
        self.plugins = sort_plugins(plugins)

    def resolve_id(self, source: str) -> str | None:
        for plugin in self.plugins:
            hook = getattr(plugin, "resolve_id", None)
            if hook is not None and (resolved := hook(source)) is not None:
                return resolved
        return None

    def load(self, module_id: str) -> str | None:
        for plugin in self.plugins:
            hook = getattr(plugin, "load", None)
            if hook is not None and (source := hook(module_id)) is not None:
                return source
        return None

    def virtual_ids(self) -> list[str]:
        ids: list[str] = []
        for plugin in self.plugins:
            hook = getattr(plugin, "virtual_ids", None)
            if hook is not None:
                ids.extend(i for i in hook() if i not in ids)
        return ids


def resolve_plugin_config(
    plugins: Sequence[Any],
    user_config: Mapping[str, Any],
    env: ConfigEnv,
    root: Path | str | None = None,
    config_file: str | None = None,
) -> tuple[dict[str, Any], ResolvedConfig]:
    """
    Run every plugin's ``config`` then ``config_resolved`` hook.

    Returns:
        The user config with plugin partials merged in, and its resolved form.
    """
    merged: dict[str, Any] = copy.deepcopy(dict(user_config))
    ordered = sort_plugins(plugins)

    for plugin in ordered:
        hook = getattr(plugin, "config", None)
        if hook is None:
            continue
        partial = hook(merged, env)
        if partial:
            merged = merge_config(merged, partial)

    resolved = ResolvedConfig.resolve(merged, env, root=root, config_file=config_file)
    for plugin in ordered:
        hook = getattr(plugin, "config_resolved", None)
        if hook is not None:
            hook(resolved)

    return merged, resolved
