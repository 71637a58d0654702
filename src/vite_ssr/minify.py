"""
HTML minification for the template transform hook.

Built on ``minify-html`` (install the ``minify`` extra). Without it the
template is returned unchanged and a warning is logged.

``minify-html`` always drops quotes around attribute values that do not
need them, so ``<div id="app">`` comes out as ``<div id=app>``. Render
hooks that look for a marker in a minified template must match the
unquoted form.

Usage::

    from vite_ssr import ssr
    from vite_ssr.minify import minify

    plugin = ssr(transform_template=minify())
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

Minifier = Callable[[str], Awaitable[str]]

# Head and body opening tags are kept: SSR output is injected into them.
MINIFY_OPTIONS: dict[str, bool] = {
    "minify_css": True,
    "minify_js": True,
    "keep_closing_tags": True,
    "keep_html_and_head_opening_tags": True,
    "keep_comments": False,
}


def minify(**overrides: bool) -> Minifier:
    """
    Create an async HTML minifier usable as ``transform_template``.

    Attribute quotes are removed where HTML allows it and this cannot be
    turned off.

    Args:
        **overrides: ``minify_html.minify`` keyword options replacing the
            defaults in ``MINIFY_OPTIONS``.
    """
    options = {**MINIFY_OPTIONS, **overrides}

    async def minify_template(html: str) -> str:
        try:
            import minify_html
        except ImportError:
            logger.warning(
                "'minify-html' is required to minify the html, the html will not be minified."
            )
            return html

        return minify_html.minify(html, **options)

    return minify_template


default_minifier = minify()
