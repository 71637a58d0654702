"""
vite-ssr - server-side rendering support for front-end builds.

Builds a client bundle and an SSR bundle wired together by an SSR manifest
and an HTML template, and renders HTML pages through the SSR entry in
development without a second dev process.
"""

from __future__ import annotations

from vite_ssr._version import get_version
from vite_ssr.errors import BuildError, ConfigError, RenderError, SSRError
from vite_ssr.host import ConfigEnv, MiddlewareStage, ResolvedConfig, merge_config
from vite_ssr.middleware import RenderContext, ResponseHandle, SSRMiddleware
from vite_ssr.minify import minify
from vite_ssr.options import PluginOptions
from vite_ssr.plugin import SSRPlugin, ssr
from vite_ssr.store import ArtifactStore, Manifest
from vite_ssr.transforms import TransformResult

__version__ = get_version()

__all__ = [
    "__version__",
    # Plugin
    "ssr",
    "SSRPlugin",
    "PluginOptions",
    "RenderContext",
    "ResponseHandle",
    "SSRMiddleware",
    "ArtifactStore",
    "Manifest",
    "TransformResult",
    "minify",
    # Host
    "ConfigEnv",
    "ResolvedConfig",
    "MiddlewareStage",
    "merge_config",
    # Errors
    "SSRError",
    "ConfigError",
    "BuildError",
    "RenderError",
]
