"""File based storage of downloaded tickets, messages and attachments.

Layout under the data directory::

    tickets/<ticket_no>/ticket.yaml
    tickets/<ticket_no>/messages/<message_id>/message.yaml
    tickets/<ticket_no>/messages/<message_id>/attachments/<attachment_id>/<quoted filename>

Identifiers and file names are percent encoded so that they are always a
single path component. Attachments are downloaded to a ``.partial`` file
and only replace the stored copy once complete. Lookups of things not
downloaded yet return None or an empty list. Write failures (``OSError``) propagate to the caller.
"""

import os
from pathlib import Path
from urllib.parse import quote, unquote

import structlog
import yaml
from pydantic import ValidationError

from ticketsync.models.ticket import Message, Ticket

log = structlog.stdlib.get_logger()

TICKET_FILE = "ticket.yaml"
MESSAGE_FILE = "message.yaml"
MAX_FILE_NAME_BYTES = 255


def _component(value: str) -> str:
    if value in (".", ".."):
        return "%2E" * len(value)
    return quote(value, safe="")


class TicketStore:
    """Persists raw ticket payloads keyed by ticket number, message id and attachment id."""

    def __init__(self, data_dir: str | Path):
        """
        Initialize the ticket store.

        Args:
            data_dir: Application data directory; tickets live in its ``tickets`` folder
        """
        self._tickets_dir = Path(data_dir).expanduser() / "tickets"
        log.info("ticket_store_initialized", tickets_dir=str(self._tickets_dir))

    @property
    def tickets_dir(self) -> Path:
        return self._tickets_dir

    def _ticket_dir(self, ticket_no: str) -> Path:
        return self._tickets_dir / _component(ticket_no)

    def _message_dir(self, ticket_no: str, message_id: str) -> Path:
        return self._ticket_dir(ticket_no) / "messages" / _component(message_id)

    def _attachment_dir(self, ticket_no: str, message_id: str, attachment_id: str) -> Path:
        return self._message_dir(ticket_no, message_id) / "attachments" / _component(attachment_id)

    def put_ticket(self, ticket: Ticket) -> Path:
        """Store the ticket record without its messages and return its location."""
        path = self._ticket_dir(ticket.ticket_no) / TICKET_FILE
        self._write_document(path, ticket.summary().model_dump())
        log.debug("ticket_stored", ticket_no=ticket.ticket_no, path=str(path))
        return path

    def put_message(self, ticket: Ticket, message: Message) -> Path:
        """Store one message of ``ticket`` and return its location."""
        path = self._message_dir(ticket.ticket_no, message.id) / MESSAGE_FILE
        self._write_document(path, message.model_dump())
        log.debug("message_stored", ticket_no=ticket.ticket_no, message_id=message.id)
        return path

    def get_ticket_summary(self, ticket_no: str) -> Ticket | None:
        path = self._ticket_dir(ticket_no) / TICKET_FILE
        document = self._read_document(path)
        if document is None:
            return None
        try:
            return Ticket.model_validate(document)
        except ValidationError as e:
            log.warning("unreadable_ticket_file", path=str(path), error=str(e))
            return None

    def list_ticket_summaries(self) -> list[Ticket]:
        """Return every stored ticket, ordered by ticket number."""
        if not self._tickets_dir.is_dir():
            return []
        tickets = []
        for ticket_dir in sorted(self._tickets_dir.iterdir()):
            if not ticket_dir.is_dir():
                continue
            ticket = self.get_ticket_summary(unquote(ticket_dir.name))
            if ticket is not None:
                tickets.append(ticket)
        return tickets

    def list_message_entries(self, ticket: Ticket) -> list[Path]:
        """Return the locations of the stored messages of ``ticket``."""
        messages_dir = self._ticket_dir(ticket.ticket_no) / "messages"
        if not messages_dir.is_dir():
            return []
        entries = [
            message_dir / MESSAGE_FILE
            for message_dir in messages_dir.iterdir()
            if (message_dir / MESSAGE_FILE).is_file()
        ]
        return sorted(entries, key=lambda entry: _sort_key(unquote(entry.parent.name)))

    def get_message(self, entry: Path) -> Message | None:
        document = self._read_document(Path(entry))
        if document is None:
            return None
        try:
            return Message.model_validate(document)
        except ValidationError as e:
            log.warning("unreadable_message_file", path=str(entry), error=str(e))
            return None

    def list_attachment_entries(self, entry: Path) -> list[Path]:
        """Return the stored attachment files of the message at ``entry``."""
        attachments_dir = Path(entry).parent / "attachments"
        if not attachments_dir.is_dir():
            return []
        files = [
            path
            for attachment_dir in attachments_dir.iterdir()
            if attachment_dir.is_dir()
            for path in attachment_dir.iterdir()
            if path.is_file()
        ]
        return sorted(files, key=lambda path: _sort_key(unquote(path.parent.name)))

    def attachment_name(self, entry: Path) -> str:
        """Return the original file name of a stored attachment."""
        return unquote(Path(entry).name)

    def prepare_attachment_sink(self, ticket: Ticket, message: Message, attachment_id: str) -> Path:
        """
        Create the directory for an attachment and return the file it is stored in.

        The remote file name is used unless it cannot be a single file name,
        in which case ``attachment-<id>`` is used. Nothing is deleted here; see
        ``commit_attachment``.
        """
        filename = f"attachment-{attachment_id}"
        for attachment in message.attachments:
            if attachment.id == attachment_id:
                filename = attachment.filename
                break

        attachment_dir = self._attachment_dir(ticket.ticket_no, message.id, attachment_id)
        attachment_dir.mkdir(parents=True, exist_ok=True)
        name = _component(filename)
        if filename in ("", ".", "..") or len(name.encode("utf-8")) > MAX_FILE_NAME_BYTES:
            log.warning("attachment_name_replaced", attachment_id=attachment_id, filename=filename)
            name = _component(f"attachment-{attachment_id}")
        return attachment_dir / name

    def partial_attachment_path(self, target: Path) -> Path:
        """Return where a download for ``target`` is written until it is complete.

        The file sits beside the attachment directories, so listings never
        show it.
        """
        return target.parent.with_name(target.parent.name + ".partial")

    def commit_attachment(self, partial: Path, target: Path) -> None:
        """Move a complete download over ``target`` and drop older copies under other names."""
        os.replace(partial, target)
        for stale in target.parent.iterdir():
            if stale.is_file() and stale != target:
                stale.unlink()
        log.debug("attachment_stored", path=str(target))

    def _write_document(self, path: Path, document: dict) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")

    def _read_document(self, path: Path) -> dict | None:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            log.warning("unparsable_stored_document", path=str(path), error=str(e))
            return None
        return document if isinstance(document, dict) else None


def _sort_key(identifier: str) -> tuple[int, int, str]:
    # Numeric ids sort by value, anything else after them alphabetically.
    if identifier.isdigit():
        return (0, int(identifier), identifier)
    return (1, 0, identifier)
