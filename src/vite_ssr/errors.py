"""
Error types for vite-ssr builds and dev rendering.

A missing SSR entry is not an error: SSR is opt-in and the plugin simply
stays out of the way. These types cover the failures that must surface.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ErrorContext:
    """Extra details attached to an error (file, url, command...)."""

    details: dict[str, Any] = field(default_factory=dict)

    def format(self) -> str:
        return ", ".join(f"{key}={value}" for key, value in self.details.items())


class SSRError(Exception):
    """Base exception for all vite-ssr errors."""

    def __init__(self, message: str, context: ErrorContext | None = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context and self.context.details:
            return f"{self.message} ({self.context.format()})"
        return self.message


class ConfigError(SSRError):
    """
    Raised when the project configuration cannot be loaded.

    Examples:
    - Malformed TOML
    - Hook reference that is not ``module:attribute``
    - Hook reference pointing at a non-callable
    """

    pass


class BuildError(SSRError):
    """Raised when the bundler process fails during a build."""

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        stderr: str = "",
        context: ErrorContext | None = None,
    ):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message, context)


class RenderError(SSRError):
    """
    Raised when a dev request fails between reading the template and
    producing the rendered page.

    The original exception is kept as ``__cause__`` and ``original``.
    """

    def __init__(self, url: str, original: BaseException):
        self.url = url
        self.original = original
        super().__init__(
            f"SSR render failed: {original}",
            ErrorContext({"url": url, "error": type(original).__name__}),
        )
