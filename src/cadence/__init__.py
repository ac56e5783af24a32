"""Cadence: spaced-repetition scheduling and study-session engine."""

__version__ = "0.1.0"
