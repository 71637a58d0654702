"""Shared pytest fixtures for vite-ssr tests."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

import pytest

from vite_ssr.host import ModuleGraph

INDEX_HTML = """<!DOCTYPE html>
<html>
  <head><title>App</title></head>
  <body>
    <div id="app"></div>
    <script type="module" src="/main.js"></script>
  </body>
</html>
"""

CLIENT_MANIFEST = {
    "src/App.vue": ["/assets/App.1a2b.js", "/assets/App.3c4d.css"],
    "src/main.js": ["/assets/main.5e6f.js"],
}


def parse_module_source(source: str) -> Any:
    """Read back the value exported by a generated virtual module."""
    prefix = "export default "
    if not source.startswith(prefix):
        raise ValueError("Not a generated virtual module")
    return json.loads(source[len(prefix) :])


class FakeBundler:
    """
    Stands in for the bundler CLI.

    Client builds (``build.ssr`` false) emit ``ssr-manifest.json`` and the
    HTML entry into ``build.outDir``. SSR builds emit the entry file and
    record what the virtual modules resolved to at that moment.
    """

    def __init__(
        self,
        manifest: Mapping[str, list[str]] | None = None,
        html: str | None = INDEX_HTML,
        html_entry: str = "index.html",
        fail: Exception | None = None,
    ):
        self.manifest = dict(CLIENT_MANIFEST if manifest is None else manifest)
        self.html = html
        self.html_entry = html_entry
        self.fail = fail
        self.calls: list[dict[str, Any]] = []
        self.virtual_sources: dict[str, str | None] = {}

    async def build(
        self, inline_config: Mapping[str, Any], *, modules: ModuleGraph | None = None
    ) -> None:
        self.calls.append(dict(inline_config))
        if self.fail is not None:
            raise self.fail

        build = inline_config.get("build") or {}
        root = Path(inline_config.get("root") or ".")
        out_dir = root / build.get("outDir", "dist")
        out_dir.mkdir(parents=True, exist_ok=True)

        if build.get("ssr"):
            entry = Path(build["ssr"]).stem
            (out_dir / f"{entry}.js").write_text("export function render() {}\n")
            if modules is not None:
                for module_id in modules.virtual_ids():
                    self.virtual_sources[module_id] = modules.load(module_id)
            return

        (out_dir / "assets").mkdir(exist_ok=True)
        (out_dir / "assets" / "main.5e6f.js").write_text("console.log('client')\n")
        if build.get("ssrManifest"):
            (out_dir / "ssr-manifest.json").write_text(json.dumps(self.manifest))
        if self.html is not None:
            (out_dir / self.html_entry).parent.mkdir(parents=True, exist_ok=True)
            (out_dir / self.html_entry).write_text(self.html)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A minimal front-end project: index.html, main.js and a public dir."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "index.html").write_text(INDEX_HTML)
    (root / "main.js").write_text("console.log('hello')\n")
    (root / "public").mkdir()
    (root / "public" / "favicon.ico").write_bytes(b"\x00")
    return root


@pytest.fixture
def fake_bundler() -> FakeBundler:
    return FakeBundler()


@pytest.fixture
def make_bundler() -> type[FakeBundler]:
    """The fake bundler class, for tests that need non-default output."""
    return FakeBundler


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Iterator[None]:
    """CLI tests install handlers on the package logger; drop them afterwards."""
    yield
    logger = logging.getLogger("vite_ssr")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
