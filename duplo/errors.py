"""Exceptions raised by the duplo client."""

from typing import Optional


class DuploError(Exception):
    """Base class for every error the CLI reports to the user."""


class TransportError(DuploError):
    """Network or connection failure talking to the server."""


class HTTPStatusError(DuploError):
    """Server answered with a non-200 status.

    The response body is kept verbatim, since the server puts its
    explanation there.
    """

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DecodeError(DuploError):
    """Listing payload could not be decoded."""


class InputError(DuploError):
    """Command was given nothing to work on."""


class LocalFileError(DuploError):
    """A local file could not be read or written."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ConfigError(DuploError):
    """Error in configuration."""
