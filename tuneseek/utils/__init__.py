"""
Utilities package
Text normalization, logging, validation and common helpers
"""

from .logger import (
    get_logger,
    configure_from_settings,
    setup_logging,
    OperationLogger,
    get_current_log_file
)
from .helpers import (
    normalize_key,
    clean_for_lookup,
    keys_match,
    clean_artist_name,
    split_artist_title,
    sanitize_filename,
    album_directory_name,
    format_duration,
    format_file_size,
    parse_duration_string,
    retry_on_failure,
    ensure_directory
)
from .validation import (
    MIN_IDENTIFIER_LENGTH,
    is_valid_identifier,
    require_valid_identifier,
    validate_output_directory,
    validate_search_query
)

__all__ = [
    # Logger exports
    'get_logger',
    'configure_from_settings',
    'setup_logging',
    'OperationLogger',
    'get_current_log_file',

    # Helper exports
    'normalize_key',
    'clean_for_lookup',
    'keys_match',
    'clean_artist_name',
    'split_artist_title',
    'sanitize_filename',
    'album_directory_name',
    'format_duration',
    'format_file_size',
    'parse_duration_string',
    'retry_on_failure',
    'ensure_directory',

    # Validation exports
    'MIN_IDENTIFIER_LENGTH',
    'is_valid_identifier',
    'require_valid_identifier',
    'validate_output_directory',
    'validate_search_query',
]
