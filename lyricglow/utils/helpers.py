"""
Utility functions and helpers for LyricGlow
Common functions for hashing, time handling, text matching and display formatting
"""

import re
import time
import hashlib
from datetime import datetime
from typing import Optional, Union


KEY_HASH_LENGTH = 32


def generate_key_hash(key: str, length: int = KEY_HASH_LENGTH) -> str:
    """
    Generate a stable filename-safe digest for a cache key

    Args:
        key: Arbitrary lookup string (URL, "title-artist", provider id)
        length: Number of hex characters to keep

    Returns:
        Truncated SHA-256 hex digest
    """
    return hashlib.sha256(key.encode('utf-8')).hexdigest()[:length]


def current_time_ms() -> int:
    """Get the current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


def format_timestamp(timestamp_ms: Union[int, float, None]) -> str:
    """
    Format an epoch-millisecond timestamp for display

    Args:
        timestamp_ms: Epoch milliseconds

    Returns:
        Formatted local timestamp string, or "-" when absent
    """
    if timestamp_ms is None:
        return "-"
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime('%Y-%m-%d %H:%M:%S')


def format_age(age_ms: Union[int, float]) -> str:
    """
    Format an age in milliseconds as a short human-readable string

    Args:
        age_ms: Age in milliseconds

    Returns:
        String like "45s", "12m", "5h" or "3d"
    """
    seconds = max(0, int(age_ms // 1000))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def format_duration(seconds: Union[int, float]) -> str:
    """
    Format duration in seconds to human-readable string

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string
    """
    if seconds < 0:
        return "0:00"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    else:
        return f"{minutes}:{secs:02d}"


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable string

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string
    """
    if size_bytes < 0:
        return "0 B"

    units = ['B', 'KB', 'MB', 'GB', 'TB']
    size = float(size_bytes)
    unit_index = 0

    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1

    if unit_index == 0:
        return f"{int(size)} {units[unit_index]}"
    else:
        return f"{size:.1f} {units[unit_index]}"


def normalize_match_text(text: Optional[str]) -> str:
    """
    Normalize a title or artist for exact matching

    Lowercases and drops everything except ASCII letters and digits, so
    "Shape of You" and "shape-of-you!" compare equal.

    Args:
        text: Title or artist name

    Returns:
        Normalized comparison string
    """
    if not text:
        return ""
    return re.sub(r'[^a-z0-9]', '', text.lower())


def truncate_string(text: Optional[str], max_length: int, suffix: str = "...") -> Optional[str]:
    """
    Truncate string to a maximum length, appending suffix when cut

    Args:
        text: Text to truncate
        max_length: Maximum length before the suffix
        suffix: Suffix appended to truncated text

    Returns:
        Truncated text, or None for empty input
    """
    if not text:
        return None
    if len(text) <= max_length:
        return text
    return text[:max_length] + suffix
