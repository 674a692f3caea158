"""Data models for the ticket synchronizer."""

from ticketsync.models.config import (
    AppConfig,
    DetailLevel,
    LoggingConfig,
    OutputConfig,
    RegistrationConfig,
    StorageConfig,
)
from ticketsync.models.ticket import Attachment, Message, Ticket

__all__ = [
    "Ticket",
    "Message",
    "Attachment",
    "AppConfig",
    "DetailLevel",
    "LoggingConfig",
    "OutputConfig",
    "RegistrationConfig",
    "StorageConfig",
]
