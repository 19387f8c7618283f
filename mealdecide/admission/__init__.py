"""
Request admission.

Responsibilities:
- Tag every request with a correlation id (``X-Request-Id``).
- Gate requests through a per-client fixed-window rate limit.
"""
