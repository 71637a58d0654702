"""Tests for the virtual manifest/template modules."""

from __future__ import annotations

import json

import pytest

from tests.conftest import parse_module_source
from vite_ssr.store import ArtifactStore
from vite_ssr.virtual import (
    DEFAULT_MANIFEST_ID,
    DEFAULT_TEMPLATE_ID,
    VirtualModuleRegistry,
    build_registry,
    manifest_module_source,
    render_type_declarations,
    template_module_source,
)


class TestModuleSource:
    @pytest.mark.parametrize(
        "manifest",
        [
            {},
            {"src/main.js": ["/assets/main.js", "/assets/main.css"]},
            {"src/ünïcode.vue": [], "a/b": ["/x y.css"]},
        ],
    )
    def test_manifest_round_trip(self, manifest: dict[str, list[str]]) -> None:
        assert parse_module_source(manifest_module_source(manifest)) == manifest

    def test_manifest_is_pretty_printed(self) -> None:
        source = manifest_module_source({"a": ["b"]})
        assert source == 'export default {\n  "a": [\n    "b"\n  ]\n}'

    @pytest.mark.parametrize(
        "template",
        [
            "",
            "<div id=\"app\"></div>",
            "  leading and trailing  \n\t",
            "<script>var s = '</script>\\n';</script>",
            "ünïcode “quotes” ✓",
        ],
    )
    def test_template_is_exact(self, template: str) -> None:
        assert parse_module_source(template_module_source(template)) == template

    def test_template_keeps_non_ascii_verbatim(self) -> None:
        assert template_module_source("é") == 'export default "é"'

    def test_parse_rejects_foreign_source(self) -> None:
        with pytest.raises(ValueError):
            parse_module_source("const x = 1")


class TestRegistry:
    def test_resolve_registered_name(self) -> None:
        registry = VirtualModuleRegistry()
        registry.register("virtual:thing", lambda: "export default 1")
        assert registry.resolve_id("virtual:thing") == "virtual:thing"
        assert registry.load("virtual:thing") == "export default 1"

    def test_unknown_name_is_not_resolved(self) -> None:
        registry = VirtualModuleRegistry()
        assert registry.resolve_id("./main.js") is None
        assert registry.load("./main.js") is None

    def test_generators_are_lazy(self) -> None:
        store = ArtifactStore()
        registry = build_registry(store)

        store.manifest = {"x": ["y"]}
        store.template = "<p>later</p>"

        assert json.loads(registry.load(DEFAULT_MANIFEST_ID).removeprefix("export default ")) == {
            "x": ["y"]
        }
        assert parse_module_source(registry.load(DEFAULT_TEMPLATE_ID)) == "<p>later</p>"

    def test_custom_names(self) -> None:
        registry = build_registry(ArtifactStore(), "app:manifest", "app:template")
        assert registry.names == ["app:manifest", "app:template"]
        assert registry.resolve_id(DEFAULT_MANIFEST_ID) is None
        assert "app:template" in registry


def test_type_declarations() -> None:
    declarations = render_type_declarations("m:id", "t:id")
    assert "declare module 'm:id'" in declarations
    assert "Record<string, string[]>" in declarations
    assert "declare module 't:id'" in declarations
    assert "const template: string" in declarations
