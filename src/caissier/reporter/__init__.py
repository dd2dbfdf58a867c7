"""
Logging for Caissier.
"""

from caissier.reporter.system_reporter import SystemReporter, level_from_name

__all__ = ["SystemReporter", "level_from_name"]
