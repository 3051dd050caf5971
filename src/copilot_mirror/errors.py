"""Exception hierarchy for copilot-mirror.

Every failure the sync engine can observe maps to one of these kinds.
Only ``RateLimited`` and ``TimeoutExceeded`` influence run-wide decisions;
everything else is confined to the file or category that raised it.
"""

from __future__ import annotations


class MirrorError(Exception):
    """Base class for all copilot-mirror errors."""


class RemoteError(MirrorError):
    """Base class for errors talking to the remote repository.

    Attributes:
        status_code: HTTP status code, if a response was received.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientRemoteError(RemoteError):
    """Server-side or network failure worth retrying."""


class FatalRemoteError(RemoteError):
    """Non-retryable remote failure (404, malformed payload, ...)."""


class RateLimited(RemoteError):
    """The remote refused the request because the quota is exhausted.

    Attributes:
        reset_at: Epoch seconds when the quota resets, if advertised.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reset_at: int | None = None,
    ):
        super().__init__(message, status_code)
        self.reset_at = reset_at


class FetchError(MirrorError):
    """A single file could not be retrieved by any transport."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class CorruptManifest(MirrorError):
    """manifest.json exists but cannot be parsed or validated."""


class BackupFailure(MirrorError):
    """A pre-deletion backup archive could not be produced."""


class TimeoutExceeded(MirrorError):
    """The run-wide deadline elapsed."""

    def __init__(self, elapsed: float, budget: float):
        super().__init__(
            f"Run deadline exceeded after {elapsed:.1f}s (budget {budget:.1f}s)"
        )
        self.elapsed = elapsed
        self.budget = budget


class PublishError(MirrorError):
    """A collection could not be exposed in a target directory."""
