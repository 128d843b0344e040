"""Error taxonomy for the relay core."""

from __future__ import annotations


class RelayError(Exception):
    """Base error for relay operations."""

    status_code = 500


class InvalidRequest(RelayError):
    """A required field is missing or a value is outside the known set."""

    status_code = 400


class NotFound(RelayError):
    """Unknown agent id, or a query produced no records."""

    status_code = 404


class Unreachable(RelayError):
    """The agent is unknown or its channel is not open."""

    status_code = 404
