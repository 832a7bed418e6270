"""
Exception hierarchy for head reconstruction.

Every error carries optional context and the underlying cause so callers can
log a single line that explains what went wrong.
"""

from __future__ import annotations

from typing import Any, Optional


class HeadBuildError(Exception):
    """
    Base exception for all head reconstruction errors.

    Formats the optional context dict and cause into the message.
    """

    def __init__(
        self,
        message: str,
        *,
        context: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None
    ):
        """
        Args:
            message: Human-readable error description
            context: Additional context information
            cause: Original exception that caused this error
        """
        self.context = context or {}
        self.cause = cause

        full_message = message
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            full_message = f"{message} [{context_str}]"

        if cause:
            full_message = f"{full_message} (caused by: {cause})"

        super().__init__(full_message)


class MalformedLandmarksError(HeadBuildError):
    """Landmark input violates the 468-point, finite-coordinate contract."""

    def __init__(
        self,
        message: str,
        expected: Optional[Any] = None,
        actual: Optional[Any] = None
    ):
        super().__init__(
            message,
            context={"expected": expected, "actual": actual}
        )


class TopologyError(HeadBuildError):
    """A topology table (oval ring, triangulation) is unusable."""
    pass


class PropLoadError(HeadBuildError):
    """The headwear prop could not be loaded or parsed."""

    def __init__(
        self,
        source: str,
        cause: Optional[BaseException] = None
    ):
        super().__init__(
            f"Failed to load headwear prop from '{source}'",
            context={"source": source},
            cause=cause
        )


class DegeneratePropError(HeadBuildError):
    """The prop has no spatial extent, so it cannot be scaled to the head."""

    def __init__(self, prop_name: str, size: Optional[tuple] = None):
        super().__init__(
            f"Headwear prop '{prop_name}' has a zero-size bounding box",
            context={"prop": prop_name, "size": size}
        )


class ConfigurationError(HeadBuildError):
    """Configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(
            message,
            context={"config_key": config_key},
            cause=cause
        )
