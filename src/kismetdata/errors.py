"""Error kinds raised by the kismetdata readers."""


class KismetDataError(Exception):
    """Base class for all kismetdata errors."""


class ConfigurationError(KismetDataError, ValueError):
    """Bad or missing filter, mode conflict, schema mismatch or invalid config."""


class BackendConnectionError(KismetDataError, ConnectionError):
    """The REST service could not be reached or the snapshot could not be opened."""


class AuthenticationError(KismetDataError):
    """The REST service rejected the supplied credentials."""


class ParseError(KismetDataError):
    """A single device entry or row could not be decoded."""
