"""
PhotoFlow utilities module.

Provides logging setup and decode statistics.
"""

from .logging import DecodeStats, setup_console_logging

__all__ = [
    'DecodeStats',
    'setup_console_logging',
]
