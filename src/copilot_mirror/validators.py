"""
Input validation for remote paths and category names.

Remote listings are untrusted input: every path is checked before it is
joined onto the local cache root so a crafted listing can never write
outside the category directory.
"""

from pathlib import PurePosixPath

KNOWN_CATEGORIES: tuple[str, ...] = (
    "chatmodes",
    "instructions",
    "prompts",
    "collections",
)


def format_validation_error(field_name: str, reason: str) -> str:
    """Generate a consistent error message for validation failures."""
    return f"{field_name} {reason}"


def validate_category(category: str) -> tuple[bool, str]:
    """
    Validate a category name.

    Args:
        category: The category name to validate

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.
    """
    if not category or not category.strip():
        return (
            False,
            format_validation_error("Category", "cannot be empty"),
        )

    if category not in KNOWN_CATEGORIES:
        return (
            False,
            format_validation_error(
                "Category",
                f"'{category}' is not one of {', '.join(KNOWN_CATEGORIES)}",
            ),
        )

    return (True, "")


def validate_remote_path(path: str, category: str) -> tuple[bool, str]:
    """
    Validate a remote file path reported by the listing endpoint.

    Validation rules:
        - Cannot be empty
        - Must be relative
        - Cannot contain '..' segments or empty segments
        - Must live under the category directory

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not path or not path.strip():
        return (False, format_validation_error("Path", "cannot be empty"))

    if path.startswith("/") or "\\" in path:
        return (
            False,
            format_validation_error("Path", f"'{path}' must be relative"),
        )

    parts = path.split("/")
    if any(part in ("", ".", "..") for part in parts):
        return (
            False,
            format_validation_error(
                "Path", f"'{path}' contains empty or dot segments"
            ),
        )

    if PurePosixPath(path).parts[0] != category or len(parts) < 2:
        return (
            False,
            format_validation_error(
                "Path", f"'{path}' is not inside category '{category}'"
            ),
        )

    return (True, "")
