"""
Error kinds raised by the matching engine.

A missing match is never an error: it is returned as a MatchResult with
match_type "none". Only caller contract violations raise.
"""


class InvalidArgument(ValueError):
    """Caller passed input that violates the engine contract."""


class ConfigError(InvalidArgument):
    """Configuration file is missing or malformed."""
