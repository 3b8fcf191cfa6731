"""
Tasks module - maintenance job definitions.

Jobs run at application startup and from the CLI.
"""

from pixel_tavern.tasks import jobs

__all__ = ["jobs"]
