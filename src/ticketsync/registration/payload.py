"""Conversion of Reg-RWS XML documents into ticket models.

The service qualifies its elements with the ``http://www.arin.net/regrws/core/v1``
namespace; lookups here ignore namespaces so that both qualified and plain
documents are accepted.
"""

import xml.etree.ElementTree as ET

import structlog

from ticketsync.models.ticket import Attachment, Message, Ticket
from ticketsync.registration.errors import UnrecognizedResponseError

log = structlog.stdlib.get_logger()

CORE_NAMESPACE = "http://www.arin.net/regrws/core/v1"


def local_name(element: ET.Element) -> str:
    """Return the tag of ``element`` without its namespace."""
    tag = element.tag
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if local_name(child) == name]


def _child(element: ET.Element, name: str) -> ET.Element | None:
    for child in element:
        if local_name(child) == name:
            return child
    return None


def _text(element: ET.Element, name: str) -> str | None:
    child = _child(element, name)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


def parse_document(payload: bytes | str) -> ET.Element:
    """Parse a response body into its root element.

    Raises:
        UnrecognizedResponseError: If the body is not well formed XML
    """
    try:
        return ET.fromstring(payload)
    except ET.ParseError as e:
        raise UnrecognizedResponseError(f"Response is not well formed XML: {e}") from e


def element_to_attachment(element: ET.Element) -> Attachment:
    attachment_id = _text(element, "attachmentId")
    if attachment_id is None:
        raise UnrecognizedResponseError("attachment element has no attachmentId")
    return Attachment(
        id=attachment_id,
        filename=_text(element, "attachmentFilename") or f"attachment-{attachment_id}",
    )


def element_to_message(element: ET.Element) -> Message:
    """Convert a ``message`` element.

    Raises:
        UnrecognizedResponseError: If the element is not a message
    """
    if local_name(element) != "message":
        raise UnrecognizedResponseError(f"Expected a message, got {local_name(element)}")

    message_id = _text(element, "messageId")
    if message_id is None:
        raise UnrecognizedResponseError("message element has no messageId")

    lines: list[str] = []
    text = _child(element, "text")
    if text is not None:
        # Blank lines come back as empty elements and must be kept.
        lines = [line.text or "" for line in _children(text, "line")]

    attachments: list[Attachment] = []
    container = _child(element, "attachments")
    if container is not None:
        attachments = [element_to_attachment(a) for a in _children(container, "attachment")]

    return Message(
        id=message_id,
        subject=_text(element, "subject"),
        category=_text(element, "category"),
        created=_text(element, "createdDate"),
        text=lines,
        attachments=attachments,
    )


def element_to_ticket(element: ET.Element) -> Ticket:
    """Convert a ``ticket`` element, summary or full, into a Ticket.

    Raises:
        UnrecognizedResponseError: If the element is not a ticket
    """
    if local_name(element) != "ticket":
        raise UnrecognizedResponseError(f"Expected a ticket, got {local_name(element)}")

    ticket_no = _text(element, "ticketNo")
    if ticket_no is None:
        raise UnrecognizedResponseError("ticket element has no ticketNo")

    messages: list[Message] = []
    container = _child(element, "messages")
    if container is not None:
        messages = [element_to_message(m) for m in _children(container, "message")]

    return Ticket(
        ticket_no=ticket_no,
        ticket_type=_text(element, "webTicketType"),
        status=_text(element, "webTicketStatus"),
        resolution=_text(element, "webTicketResolution"),
        created=_text(element, "createdDate"),
        resolved=_text(element, "resolvedDate"),
        closed=_text(element, "closedDate"),
        updated=_text(element, "updatedDate"),
        messages=messages,
    )


def summary_tickets(element: ET.Element) -> list[Ticket]:
    """Return the tickets of a summary response.

    A summary is either a single ``ticket`` or a ``collection`` of them.
    Collection members that cannot be converted are logged and skipped.

    Raises:
        UnrecognizedResponseError: If the root is neither
    """
    name = local_name(element)
    if name == "ticket":
        return [element_to_ticket(element)]
    if name != "collection":
        raise UnrecognizedResponseError(f"Unimplemented ticket summary type: {name}")

    tickets = []
    for child in _children(element, "ticket"):
        try:
            tickets.append(element_to_ticket(child))
        except UnrecognizedResponseError as e:
            log.warning("skipping_unrecognized_summary", error=str(e))
    return tickets
