"""
Core modules for Claude Tracker.

This package contains session assembly, work-day allocation,
and the sync orchestrator that posts allocations to Clockify.
"""
