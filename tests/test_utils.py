# tests/test_utils.py
"""Test utilities and helpers"""

import logging
import logging.handlers

import pytest

from lyricglow.utils.helpers import (
    generate_key_hash,
    format_age,
    format_duration,
    format_file_size,
    format_timestamp,
    normalize_match_text,
    truncate_string,
)
from lyricglow.utils.logger import (
    category_for,
    parse_size,
    setup_logging,
    get_current_log_file,
    ColoredFormatter,
    CategoryFilter,
)


class TestHelpers:
    """Test helper functions"""

    def test_generate_key_hash(self):
        assert generate_key_hash("abc") == "ba7816bf8f01cfea414140de5dae2223"
        assert len(generate_key_hash("abc", length=8)) == 8

    def test_format_duration(self):
        """Test duration formatting"""
        assert format_duration(90) == "1:30"
        assert format_duration(3661) == "1:01:01"
        assert format_duration(0) == "0:00"
        assert format_duration(-10) == "0:00"

    def test_format_file_size(self):
        """Test file size formatting"""
        assert format_file_size(1024) == "1.0 KB"
        assert format_file_size(1048576) == "1.0 MB"
        assert format_file_size(512) == "512 B"

    def test_format_age(self):
        assert format_age(45_000) == "45s"
        assert format_age(12 * 60_000) == "12m"
        assert format_age(5 * 3_600_000) == "5h"
        assert format_age(3 * 86_400_000) == "3d"
        assert format_age(-5) == "0s"

    def test_format_timestamp(self):
        assert format_timestamp(None) == "-"
        assert len(format_timestamp(1_700_000_000_000)) == len("2023-11-14 22:13:20")

    def test_normalize_match_text(self):
        assert normalize_match_text("Don't Stop Me Now!") == "dontstopmenow"
        assert normalize_match_text("AC/DC") == "acdc"
        assert normalize_match_text(None) == ""

    def test_truncate_string(self):
        assert truncate_string("short", 10) == "short"
        assert truncate_string("abcdefghij", 4) == "abcd..."
        assert truncate_string("", 4) is None
        assert truncate_string(None, 4) is None


class TestLogger:
    """Test logging setup"""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        level = root.level
        yield
        for handler in root.handlers[:]:
            if isinstance(handler, logging.handlers.RotatingFileHandler) or \
                    isinstance(handler.formatter, ColoredFormatter):
                handler.close()
                root.removeHandler(handler)
        root.setLevel(level)

    def test_category_for(self):
        assert category_for('lyricglow.cache.unified') == 'CACHE'
        assert category_for('lyricglow.lyrics.lrclib') == 'LYRICS'
        assert category_for('lyricglow.metadata.spotify') == 'METADATA'
        assert category_for('lyricglow.config.auth') == 'AUTH'
        assert category_for('lyricglow.now_playing') == 'MUSIC'
        assert category_for('lyricglow.main') == 'APP'
        assert category_for('lyricglow.cachex') == 'APP'

    def test_parse_size(self):
        assert parse_size("10MB") == 10 * 1024 * 1024
        assert parse_size("500 kb") == 500 * 1024
        with pytest.raises(ValueError):
            parse_size("lots")

    def test_console_format(self):
        record = logging.LogRecord('lyricglow.cache.unified', logging.INFO, __file__, 1, "Cache hit", None, None)
        CategoryFilter().filter(record)
        line = ColoredFormatter(use_colors=False).format(record)
        assert line.endswith("[CACHE] Cache hit")
        assert line.startswith("[")

    def test_setup_logging_with_file(self, temp_dir):
        log_file = temp_dir / "logs" / "lyricglow.log"
        setup_logging(level="INFO", log_file=str(log_file), console_output=False)

        logging.getLogger('lyricglow.test').debug("written to file only")

        assert get_current_log_file() == log_file
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "written to file only" in log_file.read_text(encoding='utf-8')
        assert logging.getLogger('urllib3').level == logging.WARNING

    def test_setup_logging_console_only(self):
        setup_logging(level="WARNING", console_output=True)
        assert get_current_log_file() is None
