"""
Plugin options.

Options accept the camelCase names used in bundler configs
(``manifestId``, ``writeManifest``...) as well as snake_case.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from vite_ssr.virtual import DEFAULT_MANIFEST_ID, DEFAULT_TEMPLATE_ID


class PluginOptions(BaseModel):
    """
    Options for the SSR plugin.

    Attributes:
        ssr: Default SSR entry, or True to use the build input. Ignored for
            the production entry when ``build.ssr`` is set.
        manifest_id: Virtual module name exposing the manifest.
        template_id: Virtual module name exposing the template.
        build_config: Config merged over the SSR build defaults, or False
            to disable the two-phase build entirely.
        write_manifest: False to skip writing ``ssr-manifest.json`` and the
            template next to the SSR bundle.
        transform_manifest: Hook receiving the manifest; may return a new
            mapping, a JSON string, or nothing.
        transform_template: Hook receiving the template; may return a new
            string or nothing. Runs after the host's own HTML transforms.
        render: Dev render hook receiving a ``RenderContext``. Without it the
            SSR module's ``render(request, template)`` export is used.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="forbid",
    )

    ssr: bool | str | None = None
    manifest_id: str = DEFAULT_MANIFEST_ID
    template_id: str = DEFAULT_TEMPLATE_ID
    build_config: dict[str, Any] | Literal[False] | None = None
    write_manifest: bool = True
    transform_manifest: Callable[..., Any] | None = Field(default=None, exclude=True)
    transform_template: Callable[..., Any] | None = Field(default=None, exclude=True)
    render: Callable[..., Any] | None = Field(default=None, exclude=True)

    @property
    def build_disabled(self) -> bool:
        return self.build_config is False
