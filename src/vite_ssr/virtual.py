"""
Virtual module registry.

Maps reserved import names (``ssr:manifest``, ``ssr:template`` by default)
to source generators evaluated on load. The host bundler asks the registry
first through ``resolve_id``/``load`` and falls back to normal resolution
when the registry answers ``None``.

Generated modules are snapshots: an importer sees the value current when
the bundler (or the dev loader) first loaded the id, not a live binding.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator

from vite_ssr.store import ArtifactStore, Manifest

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_ID = "ssr:manifest"
DEFAULT_TEMPLATE_ID = "ssr:template"

_EXPORT_PREFIX = "export default "

SourceGenerator = Callable[[], str]


def manifest_module_source(manifest: Manifest) -> str:
    """Render a manifest as an ES module default export (pretty-printed)."""
    return _EXPORT_PREFIX + json.dumps(manifest, indent=2, ensure_ascii=False)


def template_module_source(template: str) -> str:
    """Render a template as an ES module default export of a string literal."""
    return _EXPORT_PREFIX + json.dumps(template, ensure_ascii=False)


def render_type_declarations(
    manifest_id: str = DEFAULT_MANIFEST_ID,
    template_id: str = DEFAULT_TEMPLATE_ID,
) -> str:
    """TypeScript declarations for the two virtual modules."""
    return (
        f"declare module '{manifest_id}' {{\n"
        "  const manifest: Record<string, string[]>\n"
        "  export default manifest\n"
        "}\n"
        "\n"
        f"declare module '{template_id}' {{\n"
        "  const template: string\n"
        "  export default template\n"
        "}\n"
    )


class VirtualModuleRegistry:
    """Reserved names mapped to lazily evaluated source generators."""

    def __init__(self) -> None:
        self._generators: dict[str, SourceGenerator] = {}

    def register(self, name: str, generator: SourceGenerator) -> None:
        if name in self._generators:
            logger.warning("Virtual module %s registered twice, replacing", name)
        self._generators[name] = generator

    def resolve_id(self, source: str) -> str | None:
        """Claim ``source`` if it is a registered name, else let resolution continue."""
        return source if source in self._generators else None

    def load(self, module_id: str) -> str | None:
        generator = self._generators.get(module_id)
        if generator is None:
            return None
        return generator()

    @property
    def names(self) -> list[str]:
        return list(self._generators)

    def __contains__(self, name: object) -> bool:
        return name in self._generators

    def __iter__(self) -> Iterator[str]:
        return iter(self._generators)


def build_registry(
    store: ArtifactStore,
    manifest_id: str = DEFAULT_MANIFEST_ID,
    template_id: str = DEFAULT_TEMPLATE_ID,
) -> VirtualModuleRegistry:
    """Registry exposing ``store`` under the two configured names."""
    registry = VirtualModuleRegistry()
    registry.register(manifest_id, lambda: manifest_module_source(store.manifest))
    registry.register(template_id, lambda: template_module_source(store.template))
    return registry
