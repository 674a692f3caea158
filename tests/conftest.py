"""Shared fixtures: an in-memory registration service and temporary stores."""

from pathlib import Path
from typing import BinaryIO
from xml.sax.saxutils import escape

import pytest

from ticketsync.models.ticket import Attachment, Message, Ticket
from ticketsync.registration.client import RegistrationClient
from ticketsync.registration.errors import RemoteUnavailableError
from ticketsync.registration.payload import CORE_NAMESPACE, parse_document
from ticketsync.storage.ticket_store import TicketStore
from ticketsync.sync.state_store import SyncStateStore

BASE_URL = "https://reg.example.net"


def _element(name: str, value: str | None) -> str:
    return f"<{name}>{escape(value)}</{name}>" if value is not None else ""


def attachment_xml(attachment: Attachment) -> str:
    return (
        "<attachment>"
        f"{_element('attachmentId', attachment.id)}"
        f"{_element('attachmentFilename', attachment.filename)}"
        "</attachment>"
    )


def message_xml(message: Message, namespace: bool = True) -> str:
    xmlns = f' xmlns="{CORE_NAMESPACE}"' if namespace else ""
    lines = "".join(f"<line>{escape(line)}</line>" for line in message.text)
    attachments = "".join(attachment_xml(a) for a in message.attachments)
    return (
        f"<message{xmlns}>"
        f"{_element('messageId', message.id)}"
        f"{_element('subject', message.subject)}"
        f"{_element('category', message.category)}"
        f"<text>{lines}</text>"
        f"<attachments>{attachments}</attachments>"
        "</message>"
    )


def ticket_xml(ticket: Ticket, with_messages: bool = True, namespace: bool = True) -> str:
    xmlns = f' xmlns="{CORE_NAMESPACE}"' if namespace else ""
    messages = ""
    if with_messages:
        messages = "<messages>" + "".join(message_xml(m, False) for m in ticket.messages) + "</messages>"
    return (
        f"<ticket{xmlns}>"
        f"{_element('ticketNo', ticket.ticket_no)}"
        f"{_element('webTicketType', ticket.ticket_type)}"
        f"{_element('webTicketStatus', ticket.status)}"
        f"{_element('webTicketResolution', ticket.resolution)}"
        f"{_element('createdDate', ticket.created)}"
        f"{_element('resolvedDate', ticket.resolved)}"
        f"{_element('closedDate', ticket.closed)}"
        f"{_element('updatedDate', ticket.updated)}"
        f"{messages}"
        "</ticket>"
    )


def collection_xml(tickets: list[Ticket]) -> str:
    body = "".join(ticket_xml(t, with_messages=False, namespace=False) for t in tickets)
    return f'<collection xmlns="{CORE_NAMESPACE}">{body}</collection>'


def make_ticket(
    ticket_no: str,
    updated: str,
    messages: int = 0,
    attachments_per_message: int = 0,
) -> Ticket:
    return Ticket(
        ticket_no=ticket_no,
        ticket_type="IPV4_SIMPLE_REASSIGN",
        status="PENDING_REVIEW",
        created="2023-01-01T09:00:00-05:00",
        updated=updated,
        messages=[
            Message(
                id=str(100 + m),
                subject=f"Message {m}",
                category="NONE",
                text=[f"Line one of message {m}", "", "Regards"],
                attachments=[
                    Attachment(id=str(500 + m * 10 + a), filename=f"doc {m}-{a}.txt")
                    for a in range(attachments_per_message)
                ],
            )
            for m in range(messages)
        ],
    )


class FakeRegistrationClient(RegistrationClient):
    """Registration service backed by a dict of tickets.

    Every locator passed to a fetch method is appended to ``fetched``.
    Locators in ``failing`` raise RemoteUnavailableError.
    """

    def __init__(self, tickets: list[Ticket] | None = None):
        super().__init__(base_url=BASE_URL, api_key="TEST-KEY", max_retries=0)
        self.tickets: dict[str, Ticket] = {t.ticket_no: t for t in tickets or []}
        self.failing: set[str] = set()
        self.fetched: list[str] = []
        self.summary_available = True

    def put(self, ticket: Ticket) -> None:
        self.tickets[ticket.ticket_no] = ticket

    def payload(self, locator: str) -> bytes:
        return f"payload of {locator}".encode()

    def fetch_summary(self, ticket_no=None):
        locator = self.ticket_summary_uri(ticket_no)
        self.fetched.append(locator)
        if not self.summary_available or locator in self.failing:
            raise RemoteUnavailableError(f"Unable to reach {locator}")
        if ticket_no is None:
            return parse_document(collection_xml(list(self.tickets.values())))
        ticket = self.tickets.get(ticket_no)
        if ticket is None:
            return None
        return parse_document(ticket_xml(ticket, with_messages=False))

    def fetch_data(self, locator):
        self.fetched.append(locator)
        if locator in self.failing:
            raise RemoteUnavailableError(f"Unable to reach {locator}")
        for ticket in self.tickets.values():
            if locator == self.ticket_uri(ticket.ticket_no):
                return parse_document(ticket_xml(ticket))
            for message in ticket.messages:
                if locator == self.ticket_message_uri(ticket.ticket_no, message.id):
                    return parse_document(message_xml(message))
        return None

    def fetch_data_as_stream(self, locator, sink: BinaryIO) -> bool:
        self.fetched.append(locator)
        if locator in self.failing:
            raise RemoteUnavailableError(f"Unable to reach {locator}")
        for ticket in self.tickets.values():
            for message in ticket.messages:
                for attachment in message.attachments:
                    uri = self.ticket_attachment_uri(ticket.ticket_no, message.id, attachment.id)
                    if locator == uri:
                        sink.write(self.payload(locator))
                        return True
        return False


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def ticket_store(data_dir: Path) -> TicketStore:
    return TicketStore(data_dir)


@pytest.fixture
def state_store(data_dir: Path) -> SyncStateStore:
    return SyncStateStore(data_dir)
