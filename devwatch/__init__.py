"""Change-detection core for a development hot-reload tool.

This package consumes filesystem notifications, filters duplicate and noisy
events, dispatches surviving events to registered file handlers and coalesces
their successes into a single debounced reload.
"""

__version__ = "0.1.0"
