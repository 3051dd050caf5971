"""Remote access layer: GitHub contents client and bounded retry helper."""

from .client import GitHubContentsClient
from .retry import RetryOutcome, backoff_delay, retry_call

__all__ = [
    "GitHubContentsClient",
    "RetryOutcome",
    "backoff_delay",
    "retry_call",
]
