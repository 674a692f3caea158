"""Human readable rendering of stored tickets"""

from ticketsync.display.ticket_formatter import TicketFormatter

__all__ = ["TicketFormatter"]
