"""
core/errors.py -- Exceptions raised by source helpers.

These never reach the caller of the aggregation engine. HTTP helpers in
core/fetcher.py raise them; the adapters in core/adapters.py catch them at
their boundary and report the source as unavailable.
"""


class SourceUnavailable(Exception):
    """A backend system could not be reached or answered with a malformed payload."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class AuthFailure(SourceUnavailable):
    """No bearer token could be obtained for the credentialing platform."""
