"""Error types raised by tuigram.

Every error carries a human readable ``message``. The UI catches
``TuigramError`` at the action boundary and shows the message; nothing is
retried automatically.
"""


class TuigramError(Exception):
    """Base class for errors surfaced to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TuigramError):
    """Bad or missing input. No state was changed."""


class AuthError(ValidationError):
    """Credential or account conflict reported by the backend."""


class NotFoundError(TuigramError):
    """A referenced user or post does not exist."""


class DataInconsistency(TuigramError):
    """The session points at a user that is no longer stored."""


class TransportError(TuigramError):
    """File read, encode or network failure. Nothing was written."""


class ConfigError(TuigramError):
    """Invalid settings."""
