"""
Utilities package
Logging setup, hashing, time handling and display formatting helpers
"""

from .logger import (
    get_logger,
    configure_from_settings,
    setup_logging,
    log_performance,
    get_current_log_file
)
from .helpers import (
    generate_key_hash,
    current_time_ms,
    format_timestamp,
    format_age,
    format_duration,
    format_file_size,
    normalize_match_text,
    truncate_string
)

__all__ = [
    'get_logger',
    'configure_from_settings',
    'setup_logging',
    'log_performance',
    'get_current_log_file',
    'generate_key_hash',
    'current_time_ms',
    'format_timestamp',
    'format_age',
    'format_duration',
    'format_file_size',
    'normalize_match_text',
    'truncate_string',
]
