"""Errors raised by the registration client."""


class RegistrationError(Exception):
    """Base class for failures talking to the registration service.

    These are scoped to a single item: the synchronizer logs them, skips the
    item and carries on with the rest of the batch.
    """


class RemoteUnavailableError(RegistrationError):
    """The service could not be reached or answered with an error status."""


class UnrecognizedResponseError(RegistrationError):
    """The service answered with a document that is not understood."""
