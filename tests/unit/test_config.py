"""Tests for vite-ssr.toml loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from vite_ssr.config import load_project_config, resolve_hook
from vite_ssr.errors import ConfigError
from vite_ssr.minify import default_minifier

CONFIG_TOML = """
configFile = "vite.config.js"
publicDir = "static"

[build]
outDir = "out"
ssr = "src/entry.js"

[server.headers]
X-Frame-Options = "DENY"

[plugin]
ssr = "entry_server.py"
manifestId = "app:manifest"
writeManifest = false
transformTemplate = "vite_ssr.minify:default_minifier"
render = "hooks/render.py:render"
"""

RENDER_HOOK = """
def render(ctx):
    return "<p>hook</p>"
"""


@pytest.fixture
def configured(project: Path) -> Path:
    (project / "vite-ssr.toml").write_text(CONFIG_TOML)
    (project / "hooks").mkdir()
    (project / "hooks" / "render.py").write_text(RENDER_HOOK)
    return project


class TestLoadProjectConfig:
    def test_loads_host_config_and_plugin_options(self, configured: Path) -> None:
        project = load_project_config(root=configured)

        assert project.root == configured.resolve()
        assert project.path == (configured / "vite-ssr.toml").resolve()
        assert project.user_config["build"] == {"outDir": "out", "ssr": "src/entry.js"}
        assert project.user_config["server"]["headers"] == {"X-Frame-Options": "DENY"}
        assert project.user_config["root"] == str(configured.resolve())
        assert "plugin" not in project.user_config

        options = project.options
        assert options.ssr == "entry_server.py"
        assert options.manifest_id == "app:manifest"
        assert options.template_id == "ssr:template"
        assert options.write_manifest is False
        assert options.transform_template is default_minifier
        assert options.render is not None
        assert options.render(None) == "<p>hook</p>"

    def test_explicit_path_sets_root(self, configured: Path) -> None:
        project = load_project_config(configured / "vite-ssr.toml")
        assert project.root == configured.resolve()

    def test_root_key_is_relative_to_file(self, tmp_path: Path) -> None:
        (tmp_path / "web").mkdir()
        (tmp_path / "vite-ssr.toml").write_text('root = "web"\n')

        project = load_project_config(tmp_path / "vite-ssr.toml")
        assert project.root == (tmp_path / "web").resolve()

    def test_missing_default_file_is_empty_config(self, tmp_path: Path) -> None:
        project = load_project_config(root=tmp_path)

        assert project.path is None
        assert project.user_config == {"root": str(tmp_path.resolve())}
        assert project.options.write_manifest is True

    def test_missing_explicit_file_fails(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Config file not found"):
            load_project_config(tmp_path / "nope.toml")

    def test_invalid_toml_fails(self, tmp_path: Path) -> None:
        (tmp_path / "vite-ssr.toml").write_text("[build\n")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_project_config(root=tmp_path)

    def test_unknown_plugin_option_fails(self, tmp_path: Path) -> None:
        (tmp_path / "vite-ssr.toml").write_text("[plugin]\nmanifestName = 'x'\n")
        with pytest.raises(ConfigError, match="Invalid plugin options"):
            load_project_config(root=tmp_path)

    def test_build_config_false(self, tmp_path: Path) -> None:
        (tmp_path / "vite-ssr.toml").write_text("[plugin]\nbuildConfig = false\n")
        assert load_project_config(root=tmp_path).options.build_disabled is True


class TestResolveHook:
    @pytest.mark.parametrize("reference", ["no_colon", ":attr", "module:"])
    def test_malformed_reference(self, reference: str, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="module:attribute"):
            resolve_hook(reference, tmp_path)

    def test_unknown_module(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Cannot import hook module"):
            resolve_hook("vite_ssr_no_such_module:hook", tmp_path)

    def test_not_callable(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not callable"):
            resolve_hook("vite_ssr.virtual:DEFAULT_MANIFEST_ID", tmp_path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Hook file not found"):
            resolve_hook("hooks/missing.py:render", tmp_path)

    def test_broken_file(self, tmp_path: Path) -> None:
        (tmp_path / "broken.py").write_text("raise ValueError('nope')\n")
        with pytest.raises(ConfigError, match="Failed to load hook file"):
            resolve_hook("broken.py:render", tmp_path)
