"""
Error taxonomy for the chat session core.

Each class maps to one recovery policy: configuration errors are fatal for the
session, stream errors are rolled back, background failures are swallowed and
capability errors only switch the affected feature off.
"""

from __future__ import annotations

__all__ = [
    "BackgroundTaskError",
    "CapabilityUnavailable",
    "ConfigurationError",
    "ImageGenerationError",
    "MurmurError",
    "SessionNotReady",
    "StreamError",
    "CONFIGURATION_ERROR_MESSAGE",
    "SESSION_NOT_READY_MESSAGE",
    "STREAM_ERROR_MESSAGE",
]

CONFIGURATION_ERROR_MESSAGE = "API key is missing. Please set it in your environment variables."
SESSION_NOT_READY_MESSAGE = "Chat is not initialized."
STREAM_ERROR_MESSAGE = "An error occurred while communicating with the AI. Please try again."


class MurmurError(Exception):
    """Base class for all murmur errors."""


class ConfigurationError(MurmurError):
    """A required credential or setting is missing. Blocks further sends."""


class SessionNotReady(MurmurError):
    """No assistant session is bound to the active conversation yet."""


class StreamError(MurmurError):
    """The assistant stream failed after it was started."""


class BackgroundTaskError(MurmurError):
    """A best-effort background call (title, suggestions) failed."""


class CapabilityUnavailable(MurmurError):
    """An optional capability (speech, image generation) is not available."""

    def __init__(self, capability: str, reason: str | None = None) -> None:
        self.capability = capability
        self.reason = reason
        message = f"{capability} is not available"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ImageGenerationError(MurmurError):
    """The image backend returned no image or failed."""
