"""
YAML configuration files for copilot-mirror.

Up to three files are read, lowest precedence first, and their top-level
sections replace each other whole:

    ~/.config/copilot_mirror/config.yml     (user)
    .copilot_mirror/config.yml              (project, relative to CWD)
    $COPILOT_MIRROR_CONFIG                  (explicit)

Values may reference the environment as ``${VAR}`` or ``${VAR:-default}``,
and a value of ``!include other.yml`` splices in another YAML file.
"""

import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "COPILOT_MIRROR_CONFIG"
PROJECT_CONFIG = Path(".copilot_mirror") / "config.yml"
USER_CONFIG = Path(".config") / "copilot_mirror" / "config.yml"

_ENV_REF = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: Any) -> Any:
    """Expand environment references in every string inside *value*.

    An unset or empty variable yields its default, or ``""`` without one.
    """
    if isinstance(value, dict):
        return {key: interpolate_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    if not isinstance(value, str):
        return value

    def _lookup(match: re.Match) -> str:
        name, default = match.groups()
        return os.environ.get(name) or (default or "")

    return _ENV_REF.sub(_lookup, value)


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader that resolves ``!include`` relative to the current file.

    ``include_stack`` holds the files being loaded, outermost first, so a
    file that includes itself (directly or not) is reported instead of
    recursing forever.
    """

    include_stack: tuple[Path, ...] = ()

    def construct_include(self, node: yaml.ScalarNode) -> Any:
        here = Path(self.name).resolve()
        target = (here.parent / self.construct_scalar(node)).resolve()
        if target in self.include_stack:
            chain = " -> ".join(str(p) for p in (*self.include_stack, target))
            raise ValueError(f"Circular include detected: {chain}")
        if not target.is_file():
            raise FileNotFoundError(
                f"Include file not found: {target} (referenced from {here})"
            )
        return read_yaml(target, self.include_stack)


ConfigLoader.add_constructor("!include", ConfigLoader.construct_include)


def read_yaml(path: Path, include_stack: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file with ``!include`` support."""
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader.include_stack = (*include_stack, path)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


def _candidates() -> Iterator[Path]:
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        yield Path(explicit).expanduser().resolve()
    yield Path.cwd() / PROJECT_CONFIG
    yield Path.home() / USER_CONFIG


def discover_config_files() -> list[Path]:
    """Existing config files, highest precedence first."""
    return [path for path in _candidates() if path.is_file()]


def load_hierarchical_config() -> dict[str, Any]:
    """Merge every discovered file into one dict (``{}`` when none exist).

    Raises:
        yaml.YAMLError: A file is not valid YAML.
        FileNotFoundError: An ``!include`` target is missing.
        ValueError: Includes form a cycle.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files()):
        logger.debug("Loading config: %s", path)
        data = read_yaml(path)
        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )
    return interpolate_env_vars(merged)


STARTER_CONFIG = """\
# copilot-mirror configuration
#
# Values can also come from the environment:
#   COPILOT_MIRROR_REPO, COPILOT_MIRROR_CACHE_DIR, GITHUB_TOKEN, ...
#
# remote:
#   repo: github/awesome-copilot
#   branch: main
#   token: ${GITHUB_TOKEN}
#   request_timeout: 30
#   max_attempts: 3
#
# mirror:
#   cache_dir: ~/.cache/copilot-mirror
#   categories: [chatmodes, instructions, prompts, collections]
#   allow_delete: true
#   backup_retention: 5
#   run_timeout: 600
#
# publish:
#   targets:
#     - ~/.config/Code/User/prompts
#   force_copy: false
#
# logging:
#   level: INFO
#   file: null
#   format: text
"""


def ensure_config() -> Path:
    """Return the active config file, writing a commented starter if none exists."""
    existing = discover_config_files()
    if existing:
        return existing[0]
    path = Path.cwd() / PROJECT_CONFIG
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", path)
    return path
