"""Change detection and incremental download of registration tickets."""

import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Any, Callable, TypeVar

import structlog

from ticketsync.models.ticket import Attachment, Message, Ticket
from ticketsync.registration.client import RegistrationClient
from ticketsync.registration.errors import RegistrationError
from ticketsync.registration.payload import element_to_message, element_to_ticket, summary_tickets
from ticketsync.storage.ticket_store import TicketStore
from ticketsync.sync.models import SyncOutcome, SyncPhase, SyncReport
from ticketsync.sync.state_store import TICKET_NO, UPDATED, SyncStateStore
from ticketsync.sync.tree import SyncTree, TreeNode

log = structlog.stdlib.get_logger()

R = TypeVar("R")


def change_label(ticket: Ticket) -> str:
    return "%-20s %-15s %-15s" % (ticket.ticket_no, ticket.ticket_type or "", ticket.status or "")


def _ignore_progress(message: str) -> None:
    pass


class SyncEngine:
    """Finds tickets that changed remotely and downloads them.

    ``check`` compares the remote ticket summaries with the state store and
    persists the resulting change-set. ``update`` does the same and then walks
    the change-set depth first, ticket by ticket, message by message and
    attachment by attachment. Each downloaded document is written to the
    ticket store and recorded in the state store right away, so work done
    before a failure is kept. A ticket only gets its ``updated`` stamp once
    all of its messages and attachments were downloaded; until then it stays
    out of date and is retried by the next run.

    Failures to fetch a single item are logged, reported and skipped. Local
    write failures (``OSError``) end the run and propagate.
    """

    def __init__(
        self,
        client: RegistrationClient,
        ticket_store: TicketStore,
        state_store: SyncStateStore,
        progress: Callable[[str], Any] | None = None,
    ):
        """
        Initialize the sync engine.

        Args:
            client: Client for the registration service
            ticket_store: Storage for downloaded payloads
            state_store: Record of what was synchronized before
            progress: Optional callable receiving human readable progress lines
        """
        self._client = client
        self._store = ticket_store
        self._state = state_store
        self._progress = progress or _ignore_progress
        self.phase: SyncPhase = SyncPhase.START

    def check(self, ticket_no: str | None = None, force: bool = False) -> SyncReport:
        """
        Find the tickets that changed since they were last downloaded.

        Args:
            ticket_no: Ticket to check; all tickets when None
            force: Treat every ticket as changed

        Returns:
            SyncReport whose ``changes`` holds the change-set
        """
        report = self._new_report(ticket_no, force)
        self._check(report, ticket_no, force)
        return self._finish(report)

    def update(self, ticket_no: str | None = None, force: bool = False) -> SyncReport:
        """
        Download every ticket in a freshly computed change-set.

        Args:
            ticket_no: Ticket to update; all tickets when None
            force: Download every ticket regardless of its ``updated`` stamp

        Returns:
            SyncReport with download counts and skipped items

        Raises:
            OSError: If a payload or the state cannot be written locally
        """
        report = self._new_report(ticket_no, force)
        if not self._check(report, ticket_no, force) or report.changes.is_empty():
            return self._finish(report)

        self._set_phase(SyncPhase.FETCHING)
        try:
            for change in report.changes.roots:
                self._update_ticket(change, report)
        finally:
            self._state.save()

        report.outcome = SyncOutcome.UPDATED
        return self._finish(report)

    def detect_changes(self, summaries: list[Ticket], force: bool = False) -> SyncTree:
        """Build the change-set for ``summaries`` without touching any store."""
        changes = SyncTree()
        for summary in summaries:
            if force or self._state.is_out_of_date(summary.ticket_no, summary.updated):
                changes.replace_root(
                    TreeNode(
                        label=change_label(summary),
                        handle=summary.ticket_no,
                        rest_ref=self._client.ticket_uri(summary.ticket_no),
                        data={TICKET_NO: summary.ticket_no, UPDATED: summary.updated or ""},
                    )
                )
        log.info(
            "changes_detected",
            tickets_checked=len(summaries),
            tickets_changed=len(changes.roots),
            forced=force,
        )
        return changes

    def _check(self, report: SyncReport, ticket_no: str | None, force: bool) -> bool:
        summaries = self._fetch_summaries(ticket_no)
        if summaries is None:
            report.outcome = SyncOutcome.NO_DATA
            return False
        self._set_phase(SyncPhase.SUMMARIES_FETCHED)
        report.tickets_checked = len(summaries)

        report.changes = self.detect_changes(summaries, force)
        report.tickets_changed = len(report.changes.roots)
        self._set_phase(SyncPhase.DIFF_COMPUTED)

        self._state.save_change_set(report.changes)
        report.outcome = SyncOutcome.NO_CHANGES if report.changes.is_empty() else SyncOutcome.CHECKED
        return True

    def _fetch_summaries(self, ticket_no: str | None) -> list[Ticket] | None:
        try:
            element = self._client.fetch_summary(ticket_no)
            if element is None:
                log.warning("no_ticket_summary", scope=ticket_no or "all")
                return None
            return summary_tickets(element)
        except RegistrationError as e:
            log.error("ticket_summary_failed", scope=ticket_no or "all", error=str(e))
            return None

    def _update_ticket(self, change: TreeNode, report: SyncReport) -> TreeNode | None:
        ticket_no = change.handle or change.data[TICKET_NO]
        locator = change.rest_ref or self._client.ticket_uri(ticket_no)
        self._progress(f"Getting ticket {ticket_no}")

        ticket = self._fetch(locator, element_to_ticket, report, f"ticket {ticket_no}")
        if ticket is None:
            return None

        ticket_node = self._state.record_ticket(ticket, self._store.put_ticket(ticket), locator)
        report.tickets_fetched += 1

        errors_before = len(report.errors)
        for message in ticket.messages:
            self._update_message(ticket, ticket_node, message, report)

        if len(report.errors) == errors_before:
            self._state.mark_synchronized(ticket_node, ticket.updated)
        else:
            log.warning(
                "ticket_incomplete",
                ticket_no=ticket_no,
                skipped=len(report.errors) - errors_before,
            )
        return ticket_node

    def _update_message(
        self, ticket: Ticket, ticket_node: TreeNode, listed: Message, report: SyncReport
    ) -> TreeNode | None:
        ticket_no = ticket.ticket_no
        locator = self._client.ticket_message_uri(ticket_no, listed.id)
        self._progress(f"Getting message {ticket_no} : {listed.id}")

        message = self._fetch(
            locator, element_to_message, report, f"message {ticket_no} : {listed.id}"
        )
        if message is None:
            return None
        if not message.attachments and listed.attachments:
            message = message.model_copy(update={"attachments": listed.attachments})

        message_node = self._state.record_message(
            ticket_node, message, self._store.put_message(ticket, message), locator
        )
        report.messages_fetched += 1

        for attachment in message.attachments:
            self._update_attachment(ticket, message, message_node, attachment, report)
        return message_node

    def _update_attachment(
        self,
        ticket: Ticket,
        message: Message,
        message_node: TreeNode,
        attachment: Attachment,
        report: SyncReport,
    ) -> TreeNode | None:
        what = f"attachment {ticket.ticket_no} : {message.id} : {attachment.id}"
        locator = self._client.ticket_attachment_uri(ticket.ticket_no, message.id, attachment.id)
        self._progress(f"Getting {what}")

        path = self._store.prepare_attachment_sink(ticket, message, attachment.id)
        partial = self._store.partial_attachment_path(path)
        try:
            with open(partial, "wb") as sink:
                found = self._client.fetch_data_as_stream(locator, sink)
            if found:
                self._store.commit_attachment(partial, path)
        except RegistrationError as e:
            self._skip(report, f"Unable to get {what}: {e}")
            return None
        finally:
            # A previously stored copy stays in place unless the download completed.
            partial.unlink(missing_ok=True)

        if not found:
            self._skip(report, f"Unable to get {what}: not found")
            return None

        node = self._state.record_attachment(message_node, attachment, path, locator)
        report.attachments_fetched += 1
        return node

    def _fetch(
        self,
        locator: str,
        convert: Callable[[ET.Element], R],
        report: SyncReport,
        what: str,
    ) -> R | None:
        try:
            element = self._client.fetch_data(locator)
            if element is None:
                self._skip(report, f"Unable to get {what}: not found")
                return None
            return convert(element)
        except RegistrationError as e:
            self._skip(report, f"Unable to get {what}: {e}")
            return None

    def _skip(self, report: SyncReport, error: str) -> None:
        log.warning("sync_item_skipped", error=error)
        report.errors.append(error)
        self._progress(error)

    def _new_report(self, ticket_no: str | None, force: bool) -> SyncReport:
        self._set_phase(SyncPhase.START)
        log.info("sync_started", scope=ticket_no or "all", forced=force)
        return SyncReport(scope=ticket_no or "all", forced=force)

    def _finish(self, report: SyncReport) -> SyncReport:
        report.end_time = datetime.now()
        self._set_phase(SyncPhase.DONE)
        log.info(
            "sync_completed",
            scope=report.scope,
            outcome=report.outcome.value,
            tickets_checked=report.tickets_checked,
            tickets_changed=report.tickets_changed,
            tickets_fetched=report.tickets_fetched,
            messages_fetched=report.messages_fetched,
            attachments_fetched=report.attachments_fetched,
            skipped=len(report.errors),
            duration_seconds=report.duration_seconds,
        )
        return report

    def _set_phase(self, phase: SyncPhase) -> None:
        log.debug("sync_phase", phase=phase.value, previous=self.phase.value)
        self.phase = phase
