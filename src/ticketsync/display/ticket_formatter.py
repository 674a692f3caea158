"""Formatting of stored tickets for display."""

from datetime import datetime
from email.utils import format_datetime

import structlog

from ticketsync.models.config import DetailLevel
from ticketsync.models.ticket import Message, Ticket
from ticketsync.storage.ticket_store import TicketStore
from ticketsync.sync.state_store import NO_SUBJECT, ticket_label
from ticketsync.sync.tree import SyncTree, TreeNode

log = structlog.stdlib.get_logger()

BANNER_WIDTH = 80

_RANK = {
    DetailLevel.TERSE: 0,
    DetailLevel.NORMAL: 1,
    DetailLevel.EXTRA: 2,
    DetailLevel.ALL: 3,
}


def rfc2822(value: str) -> str:
    """Render an ISO 8601 timestamp the way mail headers do; unknown formats pass through."""
    try:
        return format_datetime(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return value


def banner(text: str, fill_char: str = "-") -> str:
    line = f"{fill_char}{fill_char} {text} "
    return line + fill_char * max(0, BANNER_WIDTH - len(line) + 1)


def wrap_line(line: str, width: int | None) -> list[str]:
    """Break ``line`` at the last space before ``width``, or hard at ``width``."""
    if not width:
        return [line]
    pieces = []
    while len(line) > width:
        cutoff = line.rfind(" ", 0, width + 1)
        if cutoff <= 0:
            pieces.append(line[:width])
            line = line[width:]
        else:
            pieces.append(line[:cutoff])
            line = line[cutoff + 1 :]
    pieces.append(line)
    return pieces


class TicketFormatter:
    """Builds the listing tree and the single ticket view from the ticket store.

    Lines of the single ticket view are filtered by detail level: ticket
    number, status, resolution, creation date and message bodies are always
    shown, the remaining dates at ``normal`` and the message count at
    ``extra``.
    """

    def __init__(
        self,
        ticket_store: TicketStore,
        auto_wrap: int | None = 80,
        detail: DetailLevel = DetailLevel.NORMAL,
    ) -> None:
        self._store = ticket_store
        self.auto_wrap = auto_wrap
        self.detail = DetailLevel(detail)

    def ticket_node(self, ticket: Ticket) -> TreeNode:
        """Build a node for ``ticket`` with its stored messages and attachments."""
        root = TreeNode(label=ticket_label(ticket), handle=ticket.ticket_no)
        for entry in self._store.list_message_entries(ticket):
            message = self._store.get_message(entry)
            if message is None:
                continue
            message_node = root.add_child(
                TreeNode(label=message.subject or NO_SUBJECT, data={"message_id": message.id})
            )
            for attachment in self._store.list_attachment_entries(entry):
                message_node.add_child(
                    TreeNode(label=self._store.attachment_name(attachment), handle=str(attachment))
                )
        return root

    def listing_tree(self, tickets: list[Ticket] | None = None) -> SyncTree:
        """Build a tree of ``tickets``, or of every stored ticket."""
        if tickets is None:
            tickets = self._store.list_ticket_summaries()
        tree = SyncTree()
        for ticket in tickets:
            tree.add_root(self.ticket_node(ticket))
        log.debug("listing_tree_built", tickets=len(tree.roots))
        return tree

    def format_ticket(self, ticket: Ticket) -> list[str]:
        """Render one ticket and all of its stored messages."""
        lines: list[str] = []
        self._field(lines, DetailLevel.TERSE, "Ticket Number", ticket.ticket_no)
        self._field(lines, DetailLevel.TERSE, "Status", ticket.status)
        self._field(lines, DetailLevel.TERSE, "Resolution", ticket.resolution)
        self._field(lines, DetailLevel.NORMAL, "Type", ticket.ticket_type)
        self._field(lines, DetailLevel.TERSE, "Created", ticket.created and rfc2822(ticket.created))
        self._field(lines, DetailLevel.NORMAL, "Resolved", ticket.resolved and rfc2822(ticket.resolved))
        self._field(lines, DetailLevel.NORMAL, "Closed", ticket.closed and rfc2822(ticket.closed))
        self._field(lines, DetailLevel.NORMAL, "Updated", ticket.updated and rfc2822(ticket.updated))

        entries = self._store.list_message_entries(ticket)
        self._field(lines, DetailLevel.EXTRA, "Message Count", str(len(entries)))
        lines.append("")

        for entry in entries:
            message = self._store.get_message(entry)
            if message is None:
                continue
            attachments = [self._store.attachment_name(a) for a in self._store.list_attachment_entries(entry)]
            lines.extend(self.format_message(message, attachments))
        return lines

    def format_message(self, message: Message, attachment_names: list[str]) -> list[str]:
        lines = [banner("BEGIN MESSAGE")]
        lines.append(f"Subject:  {message.subject or NO_SUBJECT}")
        if message.category:
            lines.append(f"Category: {message.category}")
        lines.append("")
        for line in message.text:
            lines.extend(wrap_line(line or "", self.auto_wrap))
        lines.append("")
        if attachment_names:
            lines.append(banner("ATTACHMENTS"))
            lines.extend(attachment_names)
        lines.append(banner("END MESSAGE"))
        lines.append("")
        return lines

    def _field(self, lines: list[str], level: DetailLevel, name: str, value: str | None) -> None:
        if value and _RANK[self.detail] >= _RANK[level]:
            lines.append(f"{name + ':':<20}{value}")
