"""
Development server host.

A Starlette app serving the project root, with plugin hooks wired in the
order the host build tool runs them:

1. plugin ``config`` / ``config_resolved`` hooks
2. plugin ``configure_server`` hooks (pre-install)
3. host internal middlewares (``MiddlewareStage.INTERNAL``): directory
   index fallback, no-cache headers
4. post hooks returned by ``configure_server`` (``MiddlewareStage.POST``)

Middleware order is explicit: each registration carries a stage, and the
Starlette stack is built outermost-first from PRE to POST.
"""

from __future__ import annotations

import html
import importlib.util
import logging
import sys
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from types import ModuleType
from typing import Any

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Mount
from starlette.staticfiles import StaticFiles
from starlette.types import ASGIApp, Receive, Scope, Send

from vite_ssr.errors import RenderError
from vite_ssr.host import (
    ConfigEnv,
    MiddlewareStage,
    ResolvedConfig,
    resolve_plugin_config,
    sort_plugins,
)
from vite_ssr.logging import log_step
from vite_ssr.transforms import maybe_await

logger = logging.getLogger(__name__)

ENTRY_MODULE_PREFIX = "vite_ssr_entries"

ModuleLoader = Callable[[Path], Any]


# =============================================================================
# Module loading
# =============================================================================


def load_python_module(path: Path) -> ModuleType:
    """
    Execute a Python SSR entry from disk, fresh on every call.

    The module is registered in ``sys.modules`` under a stable name so
    dataclasses and pickling inside it work; each call replaces it, which is
    what gives edits-without-restart in development. No bytecode is written
    for entries, so a rewrite within the same second is never served stale.
    """
    if path.suffix != ".py":
        raise ImportError(f"Cannot load {path}: SSR entries must be Python modules")
    if not path.is_file():
        raise ImportError(f"SSR entry not found: {path}")

    module_name = f"{ENTRY_MODULE_PREFIX}.{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    dont_write_bytecode = sys.dont_write_bytecode
    sys.dont_write_bytecode = True
    try:
        spec.loader.exec_module(module)
    except BaseException:
        del sys.modules[module_name]
        raise
    finally:
        sys.dont_write_bytecode = dont_write_bytecode
    return module


# =============================================================================
# Host middlewares and error handling
# =============================================================================


class HtmlFallbackMiddleware:
    """Serve ``<dir>/index.html`` for directory URLs, so ``/`` reaches page handling."""

    def __init__(self, app: ASGIApp, root: Path):
        self.app = app
        self.root = root

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["path"].endswith("/"):
            index = self.root / scope["path"].lstrip("/") / "index.html"
            if await run_in_threadpool(index.is_file):
                raw_path = scope.get("raw_path") or scope["path"].encode("latin-1")
                scope = {
                    **scope,
                    "path": scope["path"] + "index.html",
                    "raw_path": raw_path + b"index.html",
                }
        await self.app(scope, receive, send)


class NoCacheMiddleware(BaseHTTPMiddleware):
    """Dev responses are never cached by the browser."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers.setdefault("Cache-Control", "no-cache")
        return response


async def dev_error_handler(request: Request, exc: Exception) -> Response:
    """Render unhandled dev errors as a readable HTML page."""
    if isinstance(exc, RenderError):
        title = f"SSR error in {exc.url}"
        detail = f"{type(exc.original).__name__}: {exc.original}"
    else:
        title = "Internal server error"
        detail = f"{type(exc).__name__}: {exc}"

    body = (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{html.escape(title)}</title></head>"
        f"<body><h1>{html.escape(title)}</h1><pre>{html.escape(detail)}</pre></body></html>"
    )
    return HTMLResponse(body, status_code=500)


# =============================================================================
# Dev Server
# =============================================================================


class DevServer:
    """
    Host dev server exposed to plugins as a ``DevServerContext``.

    Provides:
    - Static serving of the project root
    - ``transform_index_html`` running every plugin's HTML hook
    - ``ssr_load_module`` loading SSR entries on demand
    - Staged middleware registration through ``use``
    """

    def __init__(
        self,
        config: ResolvedConfig,
        plugins: Sequence[Any] = (),
        module_loader: ModuleLoader = load_python_module,
        debug: bool = True,
    ):
        self.config = config
        self.plugins = sort_plugins(plugins)
        self.module_loader = module_loader
        self.debug = debug
        self._middlewares: list[tuple[MiddlewareStage, int, Middleware]] = []
        self._app: Starlette | None = None

    async def transform_index_html(
        self, url: str, html: str, original_url: str | None = None
    ) -> str:
        for plugin in self.plugins:
            hook = getattr(plugin, "transform_index_html", None)
            if hook is None:
                continue
            result = await maybe_await(hook(html, original_url or url))
            if isinstance(result, str):
                html = result
        return html

    async def ssr_load_module(self, path: str) -> Any:
        module_path = Path(path)
        if not module_path.is_absolute():
            module_path = self.config.root / path.lstrip("/")
        return await run_in_threadpool(self.module_loader, module_path)

    def use(
        self, middleware: type, stage: MiddlewareStage = MiddlewareStage.POST, **options: Any
    ) -> None:
        if self._app is not None:
            raise RuntimeError("Middleware must be registered before the app is built")
        self._middlewares.append((stage, len(self._middlewares), Middleware(middleware, **options)))

    @property
    def middleware(self) -> list[Middleware]:
        """Registered middleware, outermost first."""
        return [m for _, _, m in sorted(self._middlewares, key=lambda item: item[:2])]

    @property
    def app(self) -> Starlette:
        if self._app is None:
            self._app = self.build_app()
        return self._app

    def build_app(self) -> Starlette:
        post_hooks = []
        for plugin in self.plugins:
            hook = getattr(plugin, "configure_server", None)
            if hook is not None:
                post_hooks.append(hook(self))

        self.use(HtmlFallbackMiddleware, MiddlewareStage.INTERNAL, root=self.config.root)
        self.use(NoCacheMiddleware, MiddlewareStage.INTERNAL)

        for post in post_hooks:
            if callable(post):
                post()

        app = Starlette(
            debug=False,
            routes=[Mount("/", app=StaticFiles(directory=str(self.config.root)))],
            middleware=self.middleware,
            exception_handlers={Exception: dev_error_handler},
        )
        self._app = app
        return app

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Serve with uvicorn. Blocks until stopped."""
        import uvicorn

        host = host or self.config.server.host
        port = port or self.config.server.port
        app = self.app

        log_step(logger, "SSR dev", f"serving {self.config.root} at http://{host}:{port}")
        uvicorn.run(app, host=host, port=port, log_level="info" if self.debug else "warning")


def create_dev_server(
    user_config: Mapping[str, Any],
    plugins: Sequence[Any],
    root: Path | str | None = None,
    config_file: str | None = None,
    mode: str = "development",
    **kwargs: Any,
) -> DevServer:
    """Resolve config through the plugins and build a ``DevServer``."""
    env = ConfigEnv(mode=mode, command="serve")
    _, resolved = resolve_plugin_config(plugins, user_config, env, root, config_file)
    return DevServer(resolved, plugins, **kwargs)
