"""
tsp_service/reporting — console output for runs.

Public API:
    ConsoleReporter  — startup preview, per-iteration line, final route
"""

from tsp_service.reporting.console import ConsoleReporter, format_length, format_route

__all__ = ["ConsoleReporter", "format_length", "format_route"]
