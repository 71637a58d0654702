"""
Dev request interceptor.

Starlette middleware that renders HTML page requests through the SSR entry
during development, the same way the production server would, without a
prior build. It is registered innermost (``MiddlewareStage.POST``) so the
host's own middlewares see requests first.

Anything that is not a page request for an existing ``.html`` file under the
project root passes straight through to ``call_next``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response

from vite_ssr.errors import RenderError
from vite_ssr.transforms import maybe_await

if TYPE_CHECKING:
    from starlette.middleware.base import RequestResponseEndpoint
    from starlette.types import ASGIApp

    from vite_ssr.host import DevServerContext
    from vite_ssr.plugin import SSRPlugin

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".html"

# Sec-Fetch-Dest values that mean "loaded by a page", never a page itself
SUBRESOURCE_DESTINATIONS = frozenset(
    {
        "script",
        "style",
        "worker",
        "sharedworker",
        "serviceworker",
        "audioworklet",
        "paintworklet",
        "font",
        "image",
    }
)

_FRAGMENT_RE = re.compile(r"#.*$", re.DOTALL)
_QUERY_RE = re.compile(r"\?.*$", re.DOTALL)


def clean_url(url: str) -> str:
    """Drop the fragment and query string from a request URL."""
    return _QUERY_RE.sub("", _FRAGMENT_RE.sub("", url))


def is_page_request(url: str, fetch_dest: str | None) -> bool:
    """True for ``.html`` URLs not fetched as a sub-resource."""
    if not url.endswith(DOCUMENT_SUFFIX):
        return False
    return (fetch_dest or "").lower() not in SUBRESOURCE_DESTINATIONS


def resolve_document(root: Path, url: str) -> Path | None:
    """Map a URL path to a file under ``root``; None if missing or outside the root."""
    candidate = (root / unquote(url).lstrip("/")).resolve()
    if not candidate.is_relative_to(root.resolve()):
        return None
    return candidate if candidate.is_file() else None


@dataclass
class ResponseHandle:
    """Outbound response settings a render hook may adjust before the body is sent."""

    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class RenderContext:
    """Everything one dev request hands to the render hook."""

    request: Request
    response: ResponseHandle
    ssr: Any
    template: str
    manifest: dict[str, list[str]]


class SSRMiddleware(BaseHTTPMiddleware):
    """Renders ``.html`` page requests through the SSR entry module."""

    def __init__(self, app: ASGIApp, plugin: SSRPlugin, server: DevServerContext):
        super().__init__(app)
        self.plugin = plugin
        self.server = server

    def ssr_entry(self) -> str | None:
        """Configured SSR entry; ``True`` means the build input."""
        config = self.server.config
        entry: Any = self.plugin.options.ssr or config.build.ssr
        if entry is True:
            entry = config.build.entry
        return entry if isinstance(entry, str) and entry else None

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        entry = self.ssr_entry()
        if entry is None:
            return await call_next(request)

        raw_path = request.scope.get("raw_path")
        raw_url = raw_path.decode("latin-1") if raw_path else request.url.path
        url = clean_url(raw_url)

        if not is_page_request(url, request.headers.get("sec-fetch-dest")):
            return await call_next(request)

        document = await run_in_threadpool(resolve_document, self.server.config.root, url)
        if document is None:
            return await call_next(request)

        try:
            return await self.render_page(request, url, raw_url, document, entry)
        except Exception as e:
            logger.error("SSR render failed for %s: %s", url, e)
            raise RenderError(url, e) from e

    async def render_page(
        self, request: Request, url: str, raw_url: str, document: Path, entry: str
    ) -> Response:
        store = self.plugin.store
        template = await run_in_threadpool(document.read_text, "utf-8")
        original_url = f"{raw_url}?{request.url.query}" if request.url.query else raw_url
        template = await self.server.transform_index_html(url, template, original_url)

        store.template = template
        result = await self.plugin.pipeline.run_template(template)
        if result.changed and result.value is not None:
            template = result.value
            store.template = template

        ssr = await self.server.ssr_load_module(entry)
        handle = ResponseHandle()

        render = self.plugin.options.render
        if render is not None:
            rendered = await maybe_await(
                render(
                    RenderContext(
                        request=request,
                        response=handle,
                        ssr=ssr,
                        template=template,
                        manifest=store.manifest,
                    )
                )
            )
        else:
            # default renderer: the entry's ``render`` export
            rendered = await maybe_await(ssr.render(request, template))

        body = rendered if isinstance(rendered, str) else template
        headers = {**self.server.config.server.headers, **handle.headers}
        return HTMLResponse(body, status_code=handle.status_code, headers=headers)
