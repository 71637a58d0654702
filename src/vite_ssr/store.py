"""
Artifact store shared by the build orchestrator and the dev interceptor.

One store belongs to one plugin instance. Nothing here is module-level, so
several plugins (or tests) can run side by side without seeing each
other's manifest or template.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Chunk/module id -> asset paths (stylesheets, preload targets...)
Manifest = dict[str, list[str]]


@dataclass
class ArtifactStore:
    """Current manifest and template values."""

    manifest: Manifest = field(default_factory=dict)
    template: str = ""

    def reset(self) -> None:
        self.manifest = {}
        self.template = ""
