"""Balance hours and yearly carryover engine."""

__version__ = "0.1.0"
