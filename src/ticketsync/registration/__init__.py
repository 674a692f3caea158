"""Client and payload codec for the Registration RESTful Web Service"""

from ticketsync.registration.client import RegistrationClient
from ticketsync.registration.errors import (
    RegistrationError,
    RemoteUnavailableError,
    UnrecognizedResponseError,
)

__all__ = [
    "RegistrationClient",
    "RegistrationError",
    "RemoteUnavailableError",
    "UnrecognizedResponseError",
]
