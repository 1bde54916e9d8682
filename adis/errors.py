"""Exception hierarchy for the integrity service.

Library code raises these; the HTTP layer maps them to status codes.
"""


class ADISError(Exception):
    """Base class for all service errors."""


class InvalidHashError(ADISError, ValueError):
    """A value is not a 0x-prefixed 64-hex digest."""


class FormatError(ADISError):
    """A file could not be parsed as its declared format."""


class DocumentNotFoundError(ADISError, LookupError):
    """No logical document is stored under the given hash."""


class LedgerError(ADISError):
    """The ledger returned an error response."""


class LedgerUnavailable(LedgerError):
    """The ledger is not initialised or cannot be reached."""


class RegistrationFailed(LedgerError):
    """A registration was attempted and did not confirm."""


class WatermarkError(ADISError):
    """The watermarked variant could not be composed."""


class InvalidTransitionError(ADISError):
    """A draft lifecycle transition is not allowed from its current state."""


class DraftNotFoundError(ADISError, LookupError):
    """No draft is stored under the given id."""
