"""
Logging utilities for PhotoFlow
Console logging setup and per-run decode statistics
"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Handler installed by the last setup_console_logging() call
_console_handler: Optional[logging.Handler] = None


class DecodeStats:
    """Tracks decode results for a batch of photos"""

    def __init__(self):
        self.start_time = datetime.now()
        self.total_files = 0
        self.decoded_files = 0
        self.failed_files = 0
        self.formats: Dict[str, int] = {}
        self.errors = []
        self.decode_times = []

    def set_total(self, total: int):
        """Set total number of files to decode"""
        self.total_files = total

    def add_result(self, image_format: Optional[str] = None,
                   decode_time: Optional[float] = None):
        """
        Record a successful decode

        Args:
            image_format: Detected format name
            decode_time: Seconds spent waiting for the decode
        """
        self.decoded_files += 1
        if image_format:
            self.formats[image_format] = self.formats.get(image_format, 0) + 1
        if decode_time is not None:
            self.decode_times.append(decode_time)

    def add_error(self, file_path: str, error: str):
        self.failed_files += 1
        self.errors.append({
            'file': file_path,
            'error': error,
            'time': datetime.now()
        })

    def get_elapsed_time(self) -> float:
        return (datetime.now() - self.start_time).total_seconds()

    def get_average_decode_time(self) -> float:
        if not self.decode_times:
            return 0.0
        return sum(self.decode_times) / len(self.decode_times)

    def get_summary(self, cache_stats: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Get decode summary"""
        elapsed = self.get_elapsed_time()
        processed = self.decoded_files + self.failed_files
        summary = {
            'total_files': self.total_files,
            'decoded_files': self.decoded_files,
            'failed_files': self.failed_files,
            'formats': dict(self.formats),
            'elapsed_time': elapsed,
            'average_time_per_file': self.get_average_decode_time(),
            'files_per_second': processed / elapsed if elapsed > 0 else 0,
        }
        if cache_stats:
            summary['cache_hits'] = cache_stats.get('hits', 0)
            summary['cache_hit_rate'] = cache_stats.get('hit_rate', 0.0)
        return summary

    def print_summary(self, cache_stats: Optional[Dict[str, Any]] = None):
        """Print decode summary to console"""
        summary = self.get_summary(cache_stats)

        print("\n" + "=" * 60)
        print("DECODE SUMMARY")
        print("=" * 60)
        print(f"Total files:      {summary['total_files']}")
        print(f"Decoded:          {summary['decoded_files']}")
        print(f"Failed:           {summary['failed_files']}")

        if summary['formats']:
            print("\nFormats:")
            for name, count in sorted(summary['formats'].items()):
                print(f"  - {name}: {count}")

        if 'cache_hits' in summary:
            print(f"\nCache hits:       {summary['cache_hits']} ({summary['cache_hit_rate']:.1f}%)")
        print(f"Elapsed time:     {summary['elapsed_time']:.1f}s")
        print(f"Avg time/file:    {summary['average_time_per_file']:.2f}s")
        print("=" * 60)

        if self.errors:
            print("\nERRORS:")
            for error in self.errors[:10]:  # Show first 10 errors
                print(f"  - {error['file']}: {error['error']}")
            if len(self.errors) > 10:
                print(f"  ... and {len(self.errors) - 10} more errors")


def setup_console_logging(level: str = "INFO", color: bool = True,
                          fmt: str = DEFAULT_FORMAT):
    """
    Setup console logging with optional color support

    Args:
        level: Logging level name
        color: Whether to use colored output
        fmt: Log record format
    """
    console_handler = logging.StreamHandler(sys.stderr)

    if color and sys.stderr.isatty():
        try:
            import colorlog
            formatter = colorlog.ColoredFormatter(
                '%(log_color)s' + fmt + '%(reset)s',
                log_colors={
                    'DEBUG': 'cyan',
                    'INFO': 'green',
                    'WARNING': 'yellow',
                    'ERROR': 'red',
                    'CRITICAL': 'red,bg_white',
                }
            )
        except ImportError:
            # colorlog is an optional extra
            formatter = logging.Formatter(fmt)
    else:
        formatter = logging.Formatter(fmt)

    console_handler.setFormatter(formatter)

    global _console_handler
    root_logger = logging.getLogger()
    if _console_handler is not None:
        root_logger.removeHandler(_console_handler)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(console_handler)
    _console_handler = console_handler
    return console_handler
