"""Shared pytest fixtures for copilot-mirror tests."""

import hashlib
from pathlib import Path
from unittest.mock import Mock

import pytest
from dotenv import load_dotenv

from copilot_mirror.config import Config
from copilot_mirror.errors import FetchError
from copilot_mirror.sync.context import RunContext
from copilot_mirror.sync.models import RemoteEntry

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that call the real GitHub API",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring network access to GitHub"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


def blob_sha(content: bytes) -> str:
    """Stand-in for a git blob id."""
    return hashlib.sha1(content).hexdigest()


class FakeRemote:
    """In-memory replacement for GitHubContentsClient.

    ``files`` maps category -> {remote path: bytes}.  Listing and fetch
    failures are injected per category / per path.
    """

    def __init__(self, files: dict[str, dict[str, bytes]] | None = None):
        self.files: dict[str, dict[str, bytes]] = files or {}
        self.remote_ids: dict[str, str] = {}
        self.list_errors: dict[str, Exception] = {}
        self.fetch_errors: dict[str, Exception] = {}
        self.list_calls: list[str] = []
        self.fetch_calls: list[str] = []

    def list_category(self, category: str, ctx: RunContext) -> list[RemoteEntry]:
        self.list_calls.append(category)
        if category in self.list_errors:
            raise self.list_errors[category]
        return [
            RemoteEntry(
                name=path.rsplit("/", 1)[-1],
                path=path,
                remote_id=self.remote_ids.get(path, blob_sha(content)),
                size=len(content),
                download_url=f"https://raw.example.com/{path}",
            )
            for path, content in sorted(self.files.get(category, {}).items())
        ]

    def fetch(self, entry: RemoteEntry, ctx: RunContext) -> bytes:
        self.fetch_calls.append(entry.path)
        if entry.path in self.fetch_errors:
            raise self.fetch_errors[entry.path]
        category = entry.path.split("/", 1)[0]
        try:
            return self.files[category][entry.path]
        except KeyError:
            raise FetchError(entry.path, "gone") from None


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def mirror_config(tmp_path: Path, cache_root: Path) -> Config:
    """Config rooted in a temp dir with two categories."""
    return Config(
        cache_dir=str(cache_root),
        categories=["chatmodes", "prompts"],
        backup_dir=str(tmp_path / "backups"),
        backup_retention=3,
    )


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_ctx(sleeps):
    """Factory for RunContexts that record sleeps instead of sleeping."""

    def _make(**kwargs) -> RunContext:
        kwargs.setdefault("sleeper", sleeps.append)
        return RunContext(**kwargs)

    return _make


@pytest.fixture
def ctx(make_ctx) -> RunContext:
    return make_ctx()


@pytest.fixture
def mock_response():
    """Factory fixture for fake ``requests.Response`` objects."""

    def _create(
        status: int = 200,
        json_data=None,
        content: bytes = b"",
        headers: dict | None = None,
    ):
        response = Mock()
        response.status_code = status
        response.headers = headers or {}
        response.content = content
        if json_data is not None:
            response.json.return_value = json_data
        else:
            response.json.side_effect = ValueError("No JSON object could be decoded")
        return response

    return _create


@pytest.fixture
def fake_remote_cls():
    return FakeRemote
