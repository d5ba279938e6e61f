"""Core backend infrastructure for the sync backend.

This package contains configuration, logging, database, and dependency helpers
used by the FastAPI application entrypoint and the sync CLI.
"""
