"""
Input validation utilities
"""
from pathlib import Path
from typing import Optional, Tuple

from ..exceptions import InvalidIdentifierError

# Catalog video ids are 11 characters; anything under 10 cannot be resolved
MIN_IDENTIFIER_LENGTH = 10


def is_valid_identifier(identifier: Optional[str]) -> bool:
    """
    Check whether a track identifier can be resolved by the playback backend

    Args:
        identifier: Opaque track identifier (video id)

    Returns:
        True if the identifier is at least MIN_IDENTIFIER_LENGTH characters
    """
    return bool(identifier) and len(identifier.strip()) >= MIN_IDENTIFIER_LENGTH


def require_valid_identifier(identifier: Optional[str]) -> str:
    """
    Return the identifier or raise InvalidIdentifierError

    Raises:
        InvalidIdentifierError: If the identifier is too short or empty
    """
    if not is_valid_identifier(identifier):
        raise InvalidIdentifierError(
            f"Track identifier is not resolvable: {identifier!r}",
            details={'identifier': identifier, 'min_length': MIN_IDENTIFIER_LENGTH}
        )
    return identifier.strip()


def validate_output_directory(path: str) -> Tuple[bool, Optional[str]]:
    """
    Validate output directory path

    Args:
        path: Directory path to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not path:
        return False, "Output directory cannot be empty"

    path_obj = Path(path).expanduser()
    if path_obj.exists() and not path_obj.is_dir():
        return False, f"Not a directory: {path_obj}"

    try:
        path_obj.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return False, f"Cannot create directory {path_obj}: {e}"

    marker = path_obj / ".tuneseek-write-test"
    try:
        marker.touch()
        marker.unlink()
    except OSError as e:
        return False, f"Directory is not writable: {e}"

    return True, None


def validate_search_query(query: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a free-text search query

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not query or not query.strip():
        return False, "Search query cannot be empty"
    if len(query) > 300:
        return False, "Search query is too long (max 300 characters)"
    return True, None
