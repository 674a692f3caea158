"""Command line interface for checking, downloading and showing tickets.

The general usage is ``ticket [options] [TICKET_NO]``. TICKET_NO may also be
an address such as ``2=`` printed next to a ticket by the previous run.
"""

import argparse
import sys
from typing import Callable

import structlog

from ticketsync import __version__
from ticketsync.display.ticket_formatter import TicketFormatter
from ticketsync.models.config import AppConfig, DetailLevel
from ticketsync.registration.client import RegistrationClient
from ticketsync.storage.ticket_store import TicketStore
from ticketsync.sync.models import SyncOutcome, SyncReport
from ticketsync.sync.state_store import SyncStateStore
from ticketsync.sync.sync_engine import SyncEngine
from ticketsync.sync.tree import SyncTree, is_address
from ticketsync.utils.config_loader import ConfigLoader, ConfigurationError
from ticketsync.utils.logging_config import configure_logging

log = structlog.stdlib.get_logger()

Output = Callable[[str], object]


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="ticket",
        description="Query and download registration tickets using the Reg-RWS RESTful API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Summary of all downloaded tickets
  ticket

  # Which tickets changed since they were last downloaded
  ticket --check

  # Download the second ticket listed by the previous command
  ticket --update 2=
        """,
    )
    parser.add_argument("ticket_no", nargs="?", default=None, help="Ticket number or address")

    actions = parser.add_argument_group("actions").add_mutually_exclusive_group()
    actions.add_argument(
        "-c",
        "--check",
        action="store_true",
        help="Checks to see if a given ticket or all tickets have been updated.",
    )
    actions.add_argument(
        "-u",
        "--update",
        action="store_true",
        help="Downloads a given ticket if updated or all updated tickets.",
    )
    actions.add_argument(
        "--force-update",
        action="store_true",
        help="Forces a download of a given ticket or all tickets.",
    )
    actions.add_argument(
        "-s",
        "--show",
        action="store_true",
        help="Shows information on a given ticket or summary of all tickets.",
    )

    comms = parser.add_argument_group("communications options")
    comms.add_argument("-U", "--url", help="The base URL of the Registration RESTful Web Service.")
    comms.add_argument("-A", "--apikey", help="The API KEY to use with the RESTful Web Service.")

    parser.add_argument("--config", "-C", help="Path to configuration YAML file", default=None)
    parser.add_argument(
        "--detail",
        "-d",
        choices=[level.value for level in DetailLevel],
        default=None,
        help="Amount of detail to show (default from configuration)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging (DEBUG level)"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> AppConfig:
    """Load configuration, applying ``--url``, ``--apikey`` and ``--detail``."""
    overrides: dict = {}
    if args.url:
        overrides.setdefault("registration", {})["url"] = args.url
    if args.apikey:
        overrides.setdefault("registration", {})["api_key"] = args.apikey
    if args.detail:
        overrides.setdefault("output", {})["detail"] = args.detail
    return ConfigLoader().load_config(args.config, overrides=overrides)


def resolve_ticket_token(token: str | None, state_store: SyncStateStore) -> str | None:
    """Turn an address from the previous listing into its ticket number.

    Anything that is not an address, or an address with no node behind it,
    is returned unchanged and used literally.
    """
    if not is_address(token):
        return token
    node = state_store.load_change_set().find_by_address(token)
    if node is None or not node.handle:
        log.info("address_not_resolved", token=token)
        return token
    log.debug("address_resolved", token=token, handle=node.handle)
    return node.handle


def report_sync(report: SyncReport, out: Output) -> int:
    """Print the outcome of a check or update and return the exit code."""
    if report.outcome is SyncOutcome.NO_DATA:
        out("Unable to get ticket summary information.")
        return 0
    if report.outcome is SyncOutcome.NO_CHANGES:
        out("No tickets have been updated.")
        return 0
    if report.outcome is SyncOutcome.CHECKED:
        report.changes.render(out, DetailLevel.TERSE)
        return 0

    out(
        f"Downloaded {report.tickets_fetched} ticket(s), {report.messages_fetched} message(s) "
        f"and {report.attachments_fetched} attachment(s)."
    )
    if not report.success:
        out(f"{len(report.errors)} item(s) could not be downloaded and will be retried:")
        for error in report.errors:
            out(f"  - {error}")
        return 1
    return 0


def show_tickets(
    ticket_no: str | None,
    formatter: TicketFormatter,
    ticket_store: TicketStore,
    state_store: SyncStateStore,
    out: Output,
) -> int:
    """Show one stored ticket, or a summary of all stored tickets."""
    if ticket_no:
        ticket = ticket_store.get_ticket_summary(ticket_no)
        if ticket is None:
            out(f"Ticket {ticket_no} cannot be found.")
            return 1
        tree = SyncTree()
        tree.add_root(formatter.ticket_node(ticket))
        if tree.render(out, formatter.detail):
            state_store.save_change_set(tree)
        out("")
        for line in formatter.format_ticket(ticket):
            out(line)
        return 0

    tree = formatter.listing_tree()
    if tree.is_empty():
        out("No tickets found.")
        return 0
    tree.render(out, DetailLevel.TERSE)
    state_store.save_change_set(tree)
    return 0


def run(args: argparse.Namespace, config: AppConfig, out: Output = print) -> int:
    """Execute the requested action with the given configuration."""
    data_dir = config.storage.data_dir
    ticket_store = TicketStore(data_dir)
    state_store = SyncStateStore(data_dir)
    ticket_no = resolve_ticket_token(args.ticket_no, state_store)

    if args.check or args.update or args.force_update:
        client = RegistrationClient(
            base_url=str(config.registration.url),
            api_key=config.registration.api_key,
            timeout=config.registration.timeout,
            max_retries=config.registration.max_retries,
        )
        engine = SyncEngine(client, ticket_store, state_store, progress=out)
        if args.check:
            return report_sync(engine.check(ticket_no), out)
        return report_sync(engine.update(ticket_no, force=args.force_update), out)

    formatter = TicketFormatter(
        ticket_store, auto_wrap=config.output.auto_wrap, detail=config.output.detail
    )
    return show_tickets(ticket_no, formatter, ticket_store, state_store, out)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the ticket CLI.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    args = parse_arguments(argv)

    try:
        config = load_config(args)
    except ConfigurationError as e:
        configure_logging(log_level="DEBUG" if args.verbose else "WARNING")
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    configure_logging(
        log_level="DEBUG" if args.verbose else config.logging.log_level,
        json_logs=config.logging.json_logs,
        log_file=config.logging.log_file,
    )
    log.info("ticket_cli_started", version=__version__, ticket_no=args.ticket_no)

    try:
        return run(args, config)
    except OSError as e:
        log.error("local_storage_failed", error=str(e))
        print(f"Unable to write to {config.storage.data_dir}: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        log.info("ticket_cli_interrupted")
        return 1


if __name__ == "__main__":
    sys.exit(main())
