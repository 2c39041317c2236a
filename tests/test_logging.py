"""
Tests for console logging setup and decode statistics.
"""

import logging

from photoflow.utils.logging import DecodeStats, setup_console_logging


class TestDecodeStats:

    def test_summary(self):
        stats = DecodeStats()
        stats.set_total(3)
        stats.add_result("JPEG", 0.5)
        stats.add_result("RAW_FUJI", 1.5)
        stats.add_error("/photos/bad.raf", "corrupt")

        summary = stats.get_summary({'hits': 4, 'hit_rate': 40.0})
        assert summary['total_files'] == 3
        assert summary['decoded_files'] == 2
        assert summary['failed_files'] == 1
        assert summary['formats'] == {'JPEG': 1, 'RAW_FUJI': 1}
        assert summary['average_time_per_file'] == 1.0
        assert summary['cache_hits'] == 4

    def test_print_summary(self, capsys):
        stats = DecodeStats()
        stats.add_error("/photos/bad.raf", "corrupt")
        stats.print_summary()
        out = capsys.readouterr().out
        assert "DECODE SUMMARY" in out
        assert "/photos/bad.raf: corrupt" in out
        assert "Cache hits" not in out


class TestSetupConsoleLogging:

    def test_replaces_previous_handler(self):
        root = logging.getLogger()
        level = root.level
        try:
            first = setup_console_logging("DEBUG", color=False)
            second = setup_console_logging("WARNING", color=False)
            assert first not in root.handlers
            assert second in root.handlers
            assert root.level == logging.WARNING
        finally:
            root.removeHandler(second)
            root.setLevel(level)
