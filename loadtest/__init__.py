"""Load test an HTTP or WebSocket URL with concurrent virtual clients."""

__version__ = "0.1.0"
