"""Commission rule resolution and rate calculation for a marketplace admin."""

__version__ = "1.0.0"
