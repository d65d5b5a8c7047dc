"""
Exceptions shared by the task pipeline, the driver endpoints and the
mailbox automation.
"""


class DispatchError(Exception):
    """Base class for pipeline errors."""

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(DispatchError):
    """A referenced Task or AssignedTask does not exist."""


class UpstreamError(DispatchError):
    """Storage or mail provider failed; nothing has been committed."""


class SpreadsheetParseError(DispatchError):
    """The uploaded workbook could not be read at all."""


class ConflictError(DispatchError):
    """A concurrent writer changed rows this operation had locked."""
