"""
SDK for Claude Tracker.

Provides the Clockify client used to post synced time entries.
"""

from .clockify_client import ClockifyClient, ClockifyError, ClockifyProject

__all__ = ["ClockifyClient", "ClockifyError", "ClockifyProject"]
