"""
Transform pipeline for the manifest and the template.

Each slot holds at most one user hook. Hooks may be sync or async and may
return a replacement, nothing, or a ready-made ``TransformResult``. Raw
return values are normalised once, here, into ``NoChange`` or
``Replace(value)`` so callers never sniff types themselves.

Hooks run once per production harvest and once per dev request, so they
must not depend on how often they are called.
"""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from vite_ssr.store import ArtifactStore, Manifest

logger = logging.getLogger(__name__)

T = TypeVar("T")

ManifestHook = Callable[[Manifest], Any]
TemplateHook = Callable[[str], Any]


@dataclass(frozen=True)
class TransformResult(Generic[T]):
    """Outcome of a transform hook: ``NoChange`` or ``Replace(value)``."""

    changed: bool
    value: T | None = None

    @classmethod
    def no_change(cls) -> TransformResult[Any]:
        return cls(changed=False)

    @classmethod
    def replace(cls, value: T) -> TransformResult[T]:
        return cls(changed=True, value=value)

    def __repr__(self) -> str:
        return f"Replace({self.value!r})" if self.changed else "NoChange"


NO_CHANGE: TransformResult[Any] = TransformResult.no_change()


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if the hook handed back an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


def manifest_result(raw: Any) -> TransformResult[Manifest]:
    """Normalise a manifest hook return value."""
    if isinstance(raw, TransformResult):
        return raw
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("transform_manifest returned invalid JSON, ignoring: %s", e)
            return NO_CHANGE
    if isinstance(raw, dict):
        return TransformResult.replace(raw)
    return NO_CHANGE


def template_result(raw: Any) -> TransformResult[str]:
    """Normalise a template hook return value."""
    if isinstance(raw, TransformResult):
        return raw
    if isinstance(raw, str):
        return TransformResult.replace(raw)
    return NO_CHANGE


class TransformPipeline:
    """Applies the optional manifest and template hooks to an ``ArtifactStore``."""

    def __init__(
        self,
        transform_manifest: ManifestHook | None = None,
        transform_template: TemplateHook | None = None,
    ):
        self.transform_manifest = transform_manifest
        self.transform_template = transform_template

    async def run_manifest(self, manifest: Manifest) -> TransformResult[Manifest]:
        if self.transform_manifest is None:
            return NO_CHANGE
        return manifest_result(await maybe_await(self.transform_manifest(manifest)))

    async def run_template(self, template: str) -> TransformResult[str]:
        if self.transform_template is None:
            return NO_CHANGE
        return template_result(await maybe_await(self.transform_template(template)))

    async def apply_manifest(self, store: ArtifactStore) -> bool:
        """Run the manifest hook against ``store``; True when it replaced the manifest."""
        result = await self.run_manifest(store.manifest)
        if result.changed and result.value is not None:
            store.manifest = result.value
            return True
        return False

    async def apply_template(self, store: ArtifactStore) -> bool:
        """Run the template hook against ``store``; True when it replaced the template."""
        result = await self.run_template(store.template)
        if result.changed and result.value is not None:
            store.template = result.value
            return True
        return False
