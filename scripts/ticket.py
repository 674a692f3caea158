#!/usr/bin/env python3
"""
Ticket synchronization script for use from cron or a shell.

Usage:
    python scripts/ticket.py [--check | --update | --force-update | --show] [TICKET_NO]
"""

import sys

from ticketsync.cli import main

if __name__ == "__main__":
    sys.exit(main())
