"""Host-based reverse proxy with per-client rate limiting, request logging and a JSON log API."""

__version__ = "0.1.1"