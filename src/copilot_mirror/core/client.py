import base64
import binascii
import logging
from pathlib import PurePosixPath
from typing import Any

import requests

from ..config import Config
from ..errors import (
    FatalRemoteError,
    FetchError,
    RateLimited,
    RemoteError,
    TimeoutExceeded,
    TransientRemoteError,
)
from ..sync.context import RunContext
from ..sync.models import RemoteEntry
from ..validators import validate_remote_path
from .retry import retry_call

logger = logging.getLogger(__name__)

# Statuses worth another attempt (when not an exhausted quota).
TRANSIENT_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


class GitHubContentsClient:
    """Read-only access to a repository through the GitHub contents API.

    Serves as both the remote lister (``list_category``) and the content
    fetcher (``fetch``).  Every request carries an explicit timeout and is
    classified into transient, fatal or rate-limited failures.
    """

    def __init__(self, config: Config, session: requests.Session | None = None):
        self.config = config
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "copilot-mirror",
            }
        )
        if self.config.token:
            session.headers["Authorization"] = f"Bearer {self.config.token}"
        return session

    def _contents_url(self, path: str) -> str:
        return f"{self.config.api_url}/repos/{self.config.repo}/contents/{path}"

    # ------------------------------------------------------------------
    # Single request + classification
    # ------------------------------------------------------------------

    def _request(
        self,
        url: str,
        ctx: RunContext,
        params: dict[str, str] | None = None,
    ) -> requests.Response:
        """Issue one GET and map failures onto the error taxonomy."""
        timeout = ctx.request_timeout(self.config.request_timeout)
        try:
            response = self.session.get(
                url,
                params=params,
                timeout=(min(10.0, timeout), timeout),
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientRemoteError(f"GET {url}: {exc}") from exc
        except requests.RequestException as exc:
            raise FatalRemoteError(f"GET {url}: {exc}") from exc

        status = response.status_code
        if status < 400:
            return response

        remaining = response.headers.get("X-RateLimit-Remaining")
        if status in (403, 429) and remaining == "0":
            reset = response.headers.get("X-RateLimit-Reset")
            raise RateLimited(
                f"GET {url}: rate limit exhausted",
                status_code=status,
                reset_at=int(reset) if reset and reset.isdigit() else None,
            )
        if status in TRANSIENT_STATUSES:
            raise TransientRemoteError(
                f"GET {url}: HTTP {status}", status_code=status
            )
        raise FatalRemoteError(f"GET {url}: HTTP {status}", status_code=status)

    def _get(
        self,
        url: str,
        ctx: RunContext,
        description: str,
        params: dict[str, str] | None = None,
    ) -> requests.Response:
        outcome = retry_call(
            lambda: self._request(url, ctx, params),
            ctx,
            retry_on=(TransientRemoteError,),
            max_attempts=self.config.max_attempts,
            description=description,
        )
        return outcome.unwrap()

    # ------------------------------------------------------------------
    # Remote lister
    # ------------------------------------------------------------------

    def list_category(self, category: str, ctx: RunContext) -> list[RemoteEntry]:
        """List the files of one category directory.

        Directories, non-file entries, unsafe paths and files with
        unaccepted extensions are dropped.

        Raises:
            TransientRemoteError: Retries exhausted.
            FatalRemoteError: Non-retryable status or malformed payload.
            RateLimited: Quota exhausted.
            TimeoutExceeded: Run deadline passed.
        """
        response = self._get(
            self._contents_url(category),
            ctx,
            description=f"list {category}",
            params={"ref": self.config.branch},
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise FatalRemoteError(f"list {category}: malformed JSON") from exc
        if not isinstance(payload, list):
            raise FatalRemoteError(
                f"list {category}: expected a directory listing, got {type(payload).__name__}"
            )

        accepted = tuple(ext.lower() for ext in self.config.extensions)
        entries: list[RemoteEntry] = []
        for raw in payload:
            if not isinstance(raw, dict) or raw.get("type") != "file":
                continue
            path = str(raw.get("path", ""))
            if not path.lower().endswith(accepted):
                continue
            ok, reason = validate_remote_path(path, category)
            if not ok:
                logger.warning("Ignoring remote entry: %s", reason)
                continue
            try:
                entry = RemoteEntry(
                    name=str(raw.get("name") or PurePosixPath(path).name),
                    path=path,
                    remote_id=str(raw.get("sha", "")),
                    size=int(raw.get("size") or 0),
                    download_url=raw.get("download_url"),
                    type="file",
                )
            except (TypeError, ValueError) as exc:
                raise FatalRemoteError(
                    f"list {category}: malformed entry {path!r}: {exc}"
                ) from exc
            entries.append(entry)

        logger.debug("Listed %d files in %s", len(entries), category)
        return entries

    # ------------------------------------------------------------------
    # Content fetcher
    # ------------------------------------------------------------------

    def fetch(self, entry: RemoteEntry, ctx: RunContext) -> bytes:
        """Return the raw bytes of *entry*.

        Tries ``download_url`` first; on failure or an empty body falls
        back to the contents API, whose JSON envelope carries base64 data.

        Raises:
            FetchError: Neither transport produced non-empty bytes.
            RateLimited: Quota exhausted (never swallowed).
            TimeoutExceeded: Run deadline passed.
        """
        if entry.download_url:
            try:
                data = self._get(
                    entry.download_url, ctx, description=f"download {entry.path}"
                ).content
                if data:
                    return data
                logger.warning(
                    "Empty body from download URL for %s, using contents API",
                    entry.path,
                )
            except (RateLimited, TimeoutExceeded):
                raise
            except RemoteError as exc:
                logger.warning(
                    "Download failed for %s (%s), using contents API",
                    entry.path,
                    exc,
                )

        try:
            response = self._get(
                self._contents_url(entry.path),
                ctx,
                description=f"contents {entry.path}",
                params={"ref": self.config.branch},
            )
        except (RateLimited, TimeoutExceeded):
            raise
        except RemoteError as exc:
            raise FetchError(entry.path, str(exc)) from exc

        return self._decode_envelope(entry.path, response)

    @staticmethod
    def _decode_envelope(path: str, response: requests.Response) -> bytes:
        try:
            envelope: Any = response.json()
        except ValueError as exc:
            raise FetchError(path, "malformed contents envelope") from exc
        if not isinstance(envelope, dict) or "content" not in envelope:
            raise FetchError(path, "contents envelope has no content")

        encoding = envelope.get("encoding", "base64")
        if encoding != "base64":
            raise FetchError(path, f"unsupported envelope encoding '{encoding}'")
        try:
            data = base64.b64decode(envelope["content"] or "")
        except (binascii.Error, TypeError) as exc:
            raise FetchError(path, f"invalid base64 content: {exc}") from exc
        if not data:
            raise FetchError(path, "empty content")
        return data
