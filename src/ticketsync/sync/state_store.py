"""Persistent record of what was last synchronized."""

import os
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from ticketsync.models.ticket import Attachment, Message, Ticket
from ticketsync.sync.tree import SyncTree, TreeNode

log = structlog.stdlib.get_logger()

NO_SUBJECT = "( NO SUBJECT GIVEN )"

# Keys used in TreeNode.data
ARTIFACT = "artifact"
UPDATED = "updated"
TICKET_NO = "ticket_no"
MESSAGE_ID = "message_id"
ATTACHMENT_ID = "attachment_id"


def ticket_label(ticket: Ticket) -> str:
    return f"{ticket.ticket_no} ({ticket.ticket_type}, {ticket.status})"


class SyncStateStore:
    """Tracks synchronized tickets, messages and attachments as a SyncTree.

    Ticket nodes carry the ticket number as handle and the ``updated`` stamp
    the ticket had when it was last completely downloaded. The tree is read
    from disk on first access and written back by ``save``.

    A second tree, the change-set (or listing) of the most recent run, is kept
    in its own file so that a later invocation can resolve the addresses that
    were printed next to it.
    """

    TREE_FILE: str = "ticket_tree.yaml"
    CHANGE_SET_FILE: str = "last_tree.yaml"

    def __init__(self, data_dir: str | Path):
        """
        Initialize the state store.

        Args:
            data_dir: Application data directory holding both tree files
        """
        self._data_dir = Path(data_dir).expanduser()
        self._tree: SyncTree | None = None
        log.info("sync_state_store_initialized", data_dir=str(self._data_dir))

    @property
    def tree_path(self) -> Path:
        return self._data_dir / self.TREE_FILE

    @property
    def change_set_path(self) -> Path:
        return self._data_dir / self.CHANGE_SET_FILE

    def load(self) -> SyncTree:
        """Read the full tree from disk, starting empty if there is none."""
        self._tree = self._read_tree(self.tree_path)
        log.info("sync_state_loaded", tickets=len(self._tree.roots))
        return self._tree

    def save(self) -> None:
        """Write the full tree to disk. Does nothing if it was never loaded."""
        if self._tree is None:
            return
        self._write_tree(self.tree_path, self._tree)
        log.info("sync_state_saved", tickets=len(self._tree.roots))

    def full_tree(self) -> SyncTree:
        if self._tree is None:
            return self.load()
        return self._tree

    def load_change_set(self) -> SyncTree:
        return self._read_tree(self.change_set_path)

    def save_change_set(self, tree: SyncTree) -> None:
        """Persist the change-set of this run, even when it is empty."""
        self._write_tree(self.change_set_path, tree)
        log.info("change_set_saved", tickets=len(tree.roots))

    def is_out_of_date(self, ticket_no: str, updated_at: str | None) -> bool:
        """
        Check whether a ticket needs downloading.

        A ticket is out of date if it was never completely synchronized or if
        the stored ``updated`` stamp differs from ``updated_at``.
        """
        node = self.full_tree().find_by_handle(ticket_no)
        if node is None:
            return True
        stored = node.data.get(UPDATED)
        if stored is None:
            return True
        return stored != (updated_at or "")

    def record_ticket(self, ticket: Ticket, artifact_ref: str | Path, locator: str) -> TreeNode:
        """
        Insert or replace the node of ``ticket``.

        The new node has no children and no ``updated`` stamp until
        ``mark_synchronized`` is called, so an interrupted download leaves the
        ticket out of date.
        """
        node = TreeNode(
            label=ticket_label(ticket),
            handle=ticket.ticket_no,
            rest_ref=locator,
            data={TICKET_NO: ticket.ticket_no, ARTIFACT: str(artifact_ref)},
        )
        return self.full_tree().replace_root(node)

    def record_message(
        self, ticket_node: TreeNode, message: Message, artifact_ref: str | Path, locator: str
    ) -> TreeNode:
        node = TreeNode(
            label=message.subject or NO_SUBJECT,
            rest_ref=locator,
            data={MESSAGE_ID: message.id, ARTIFACT: str(artifact_ref)},
        )
        return ticket_node.replace_child(node, MESSAGE_ID)

    def record_attachment(
        self,
        message_node: TreeNode,
        attachment: Attachment,
        artifact_ref: str | Path,
        locator: str,
    ) -> TreeNode:
        node = TreeNode(
            label=attachment.filename,
            rest_ref=locator,
            data={ATTACHMENT_ID: attachment.id, ARTIFACT: str(artifact_ref)},
        )
        return message_node.replace_child(node, ATTACHMENT_ID)

    def mark_synchronized(self, ticket_node: TreeNode, updated_at: str | None) -> None:
        """Stamp a ticket whose messages and attachments were all downloaded."""
        ticket_node.data[UPDATED] = updated_at or ""
        log.debug("ticket_synchronized", ticket_no=ticket_node.handle, updated=updated_at)

    def _read_tree(self, path: Path) -> SyncTree:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            log.info("no_stored_tree", path=str(path))
            return SyncTree()
        try:
            return SyncTree.from_yaml(text)
        except (yaml.YAMLError, ValidationError) as e:
            # Everything is refetched, which rebuilds the file.
            log.error("unreadable_stored_tree", path=str(path), error=str(e))
            return SyncTree()

    def _write_tree(self, path: Path, tree: SyncTree) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        temporary = path.with_name(path.name + ".tmp")
        temporary.write_text(tree.to_yaml(), encoding="utf-8")
        os.replace(temporary, path)
