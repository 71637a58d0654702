"""
Project configuration file.

``vite-ssr.toml`` holds the host config (camelCase keys, as the bundler
spells them) plus a ``[plugin]`` table with the SSR plugin options::

    configFile = "vite.config.js"
    publicDir = "public"

    [build]
    outDir = "dist"
    ssr = "src/entry-server.js"

    [server.headers]
    X-Frame-Options = "DENY"

    [plugin]
    ssr = "src/entry_server.py"
    writeManifest = true
    transformTemplate = "vite_ssr.minify:default_minifier"
    render = "hooks/render.py:render"

Hook options are references: ``package.module:attribute`` for importable
code, or ``path/to/file.py:attribute`` relative to the project root.
"""

from __future__ import annotations

import importlib
import importlib.util
import sys
import tomllib
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from vite_ssr.errors import ConfigError, ErrorContext
from vite_ssr.options import PluginOptions

DEFAULT_CONFIG_FILE = "vite-ssr.toml"
PROJECT_HOOK_PREFIX = "vite_ssr_project"

HOOK_OPTIONS = (
    "transformManifest",
    "transformTemplate",
    "render",
    "transform_manifest",
    "transform_template",
)


@dataclass
class ProjectConfig:
    """Loaded project configuration."""

    root: Path
    path: Path | None = None
    user_config: dict[str, Any] = field(default_factory=dict)
    options: PluginOptions = field(default_factory=PluginOptions)


def _load_file_attribute(root: Path, file_ref: str, attr: str) -> Any:
    path = (root / file_ref).resolve()
    if not path.is_file():
        raise ConfigError("Hook file not found", ErrorContext({"path": str(path)}))

    module_name = f"{PROJECT_HOOK_PREFIX}.{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ConfigError("Cannot load hook file", ErrorContext({"path": str(path)}))

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        del sys.modules[module_name]
        raise ConfigError(
            f"Failed to load hook file: {e}", ErrorContext({"path": str(path)})
        ) from e
    return getattr(module, attr, None)


def resolve_hook(reference: str, root: Path) -> Callable[..., Any]:
    """Resolve ``module:attr`` or ``file.py:attr`` to a callable."""
    target, sep, attr = reference.rpartition(":")
    if not sep or not target or not attr:
        raise ConfigError(
            "Hook reference must look like 'module:attribute'",
            ErrorContext({"reference": reference}),
        )

    if target.endswith(".py"):
        value = _load_file_attribute(root, target, attr)
    else:
        try:
            module = importlib.import_module(target)
        except ImportError as e:
            raise ConfigError(
                f"Cannot import hook module: {e}", ErrorContext({"reference": reference})
            ) from e
        value = getattr(module, attr, None)

    if not callable(value):
        raise ConfigError("Hook is not callable", ErrorContext({"reference": reference}))
    return value


def find_config_file(start: Path) -> Path | None:
    candidate = start / DEFAULT_CONFIG_FILE
    return candidate if candidate.is_file() else None


def load_project_config(
    path: Path | str | None = None, root: Path | str | None = None
) -> ProjectConfig:
    """
    Load ``vite-ssr.toml``.

    Args:
        path: Config file. Defaults to ``vite-ssr.toml`` in ``root``; a
            missing default file yields an empty config.
        root: Project root. Defaults to the config file's ``root`` key,
            then the config file's directory, then the working directory.

    Raises:
        ConfigError: unreadable TOML, invalid options or bad hook references.
    """
    base = Path(root).resolve() if root else Path.cwd()
    config_path = Path(path).resolve() if path else find_config_file(base)

    data: dict[str, Any] = {}
    if config_path is not None:
        if not config_path.is_file():
            raise ConfigError("Config file not found", ErrorContext({"path": str(config_path)}))
        try:
            data = tomllib.loads(config_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML: {e}", ErrorContext({"path": str(config_path)})) from e
        if root is None:
            base = config_path.parent

    plugin_data: dict[str, Any] = dict(data.pop("plugin", {}) or {})
    project_root = (base / data["root"]).resolve() if data.get("root") else base
    data["root"] = str(project_root)

    for key in HOOK_OPTIONS:
        reference = plugin_data.get(key)
        if isinstance(reference, str):
            plugin_data[key] = resolve_hook(reference, project_root)

    try:
        options = PluginOptions.model_validate(plugin_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid plugin options: {e}") from e

    return ProjectConfig(root=project_root, path=config_path, user_config=data, options=options)
