"""Local storage of downloaded ticket payloads"""

from ticketsync.storage.ticket_store import TicketStore

__all__ = ["TicketStore"]
