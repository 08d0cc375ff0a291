"""Unit tests for voicedesk.core.utils formatting helpers."""

import re

from voicedesk.core.utils import (
    clamp,
    format_megabytes,
    format_time,
    safe_file_stem,
    unique_file_name,
)


class TestFormatTime:
    """Verify M:SS rendering of elapsed and total times."""

    def test_minutes_and_seconds(self):
        assert format_time(3) == "0:03"
        assert format_time(65.9) == "1:05"
        assert format_time(600) == "10:00"

    def test_invalid_values_render_zero(self):
        assert format_time(None) == "0:00"
        assert format_time(float("nan")) == "0:00"
        assert format_time(-4) == "0:00"


class TestClamp:
    def test_bounds(self):
        assert clamp(-0.5) == 0.0
        assert clamp(1.5) == 1.0
        assert clamp(0.25) == 0.25

    def test_nan_maps_to_lower_bound(self):
        assert clamp(float("nan")) == 0.0


class TestFileNames:
    """Upload names and download stems."""

    def test_unique_file_name_format(self):
        name = unique_file_name("user-1")
        assert re.fullmatch(r"user-1-\d+\.wav", name)

    def test_safe_file_stem_strips_separators(self):
        assert safe_file_stem("Team sync / notes?") == "Team sync _ notes_"
        assert "/" not in safe_file_stem("../../etc/passwd")

    def test_safe_file_stem_fallback(self):
        assert safe_file_stem("   ") == "recording"
        assert safe_file_stem(None) == "recording"


def test_format_megabytes():
    assert format_megabytes(1024 * 1024) == "1.00 MB"
    assert format_megabytes(None) == "0.00 MB"
