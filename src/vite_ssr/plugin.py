"""
SSR plugin for the host build tool.

Adds server-side rendering to a front-end build:

- production: builds the client first, harvests its SSR manifest and HTML
  template, then lets the host build the SSR entry (see ``orchestrator``)
- development: renders HTML page requests through the SSR entry (see
  ``middleware``)
- both: exposes the manifest and template as the virtual modules
  ``ssr:manifest`` and ``ssr:template``

Example::

    from vite_ssr import ssr

    plugin = ssr(ssr="src/entry_server.py", write_manifest=False)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Literal

from vite_ssr.host import (
    BuildService,
    ConfigEnv,
    DevServerContext,
    MiddlewareStage,
    ResolvedConfig,
)
from vite_ssr.middleware import SSRMiddleware
from vite_ssr.options import PluginOptions
from vite_ssr.orchestrator import BuildOrchestrator
from vite_ssr.store import ArtifactStore
from vite_ssr.transforms import TransformPipeline
from vite_ssr.virtual import build_registry

logger = logging.getLogger(__name__)

PLUGIN_NAME = "vite-ssr"


class SSRPlugin:
    """
    Host plugin wiring the artifact store, transform pipeline, virtual
    modules, build orchestrator and dev interceptor together.

    Hook methods follow the host's plugin interface: ``config``,
    ``config_resolved``, ``transform_index_html``, ``resolve_id``, ``load``,
    ``configure_server``, ``build_start`` and ``build_end``.
    """

    name = PLUGIN_NAME
    enforce: Literal["pre", "post"] | None = "post"

    def __init__(
        self,
        options: PluginOptions | None = None,
        build_service: BuildService | None = None,
    ):
        self.options = options or PluginOptions()
        self.store = ArtifactStore()
        self.pipeline = TransformPipeline(
            transform_manifest=self.options.transform_manifest,
            transform_template=self.options.transform_template,
        )
        self.registry = build_registry(
            self.store, self.options.manifest_id, self.options.template_id
        )
        self.orchestrator = BuildOrchestrator(
            self.options, self.store, self.pipeline, build_service
        )

    @property
    def build_service(self) -> BuildService | None:
        return self.orchestrator.build_service

    @build_service.setter
    def build_service(self, service: BuildService | None) -> None:
        self.orchestrator.build_service = service

    # -------------------------------------------------------------------------
    # Config hooks
    # -------------------------------------------------------------------------

    def config(self, user_config: Mapping[str, Any], env: ConfigEnv) -> dict[str, Any] | None:
        return self.orchestrator.configure(user_config, env)

    def config_resolved(self, config: ResolvedConfig) -> None:
        self.orchestrator.config_resolved(config)

    # -------------------------------------------------------------------------
    # Module hooks
    # -------------------------------------------------------------------------

    def transform_index_html(self, html: str, url: str | None = None) -> None:
        # registered last (enforce: post), so this is the most recent html
        self.store.template = html or ""

    def resolve_id(self, source: str) -> str | None:
        return self.registry.resolve_id(source)

    def load(self, module_id: str) -> str | None:
        return self.registry.load(module_id)

    def virtual_ids(self) -> list[str]:
        return self.registry.names

    # -------------------------------------------------------------------------
    # Dev server
    # -------------------------------------------------------------------------

    def configure_server(self, server: DevServerContext) -> Callable[[], None]:
        """Return a post hook that installs the interceptor after the host's middlewares."""

        def install() -> None:
            server.use(SSRMiddleware, MiddlewareStage.POST, plugin=self, server=server)

        return install

    # -------------------------------------------------------------------------
    # Build
    # -------------------------------------------------------------------------

    async def build_start(self) -> None:
        await self.orchestrator.build_start()

    def build_end(self) -> None:
        self.orchestrator.build_end()


def ssr(
    options: PluginOptions | Mapping[str, Any] | None = None,
    *,
    build_service: BuildService | None = None,
    **kwargs: Any,
) -> SSRPlugin:
    """
    Create the SSR plugin.

    Options may be given as a ``PluginOptions``, a mapping (camelCase or
    snake_case keys) or keyword arguments.
    """
    if isinstance(options, PluginOptions):
        opts = options
        if kwargs:
            # overrides get the same alias and type validation as the constructor
            overrides = PluginOptions.model_validate(kwargs)
            opts = options.model_copy(
                update={name: getattr(overrides, name) for name in overrides.model_fields_set}
            )
    else:
        opts = PluginOptions.model_validate({**(options or {}), **kwargs})
    return SSRPlugin(opts, build_service=build_service)
