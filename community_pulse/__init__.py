"""Community Pulse - health dashboard backend for chat communities."""

__version__ = "0.1.0"
