"""Data models for synchronization runs."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from ticketsync.sync.tree import SyncTree


class SyncPhase(str, Enum):
    """Progress of a synchronization run."""

    START = "start"
    SUMMARIES_FETCHED = "summaries_fetched"
    DIFF_COMPUTED = "diff_computed"
    FETCHING = "fetching"
    DONE = "done"


class SyncOutcome(str, Enum):
    """How a run ended, as far as the user is concerned."""

    NO_DATA = "no_data"
    NO_CHANGES = "no_changes"
    CHECKED = "checked"
    UPDATED = "updated"


class SyncReport(BaseModel):
    """Report of a check or update run."""

    scope: str = Field(default="all", description="Ticket number checked, or 'all'")
    outcome: SyncOutcome = Field(default=SyncOutcome.NO_DATA, description="How the run ended")
    forced: bool = Field(default=False, description="Whether every ticket was treated as changed")
    tickets_checked: int = Field(default=0, ge=0, description="Summaries compared")
    tickets_changed: int = Field(default=0, ge=0, description="Tickets in the change-set")
    tickets_fetched: int = Field(default=0, ge=0, description="Ticket records downloaded")
    messages_fetched: int = Field(default=0, ge=0, description="Messages downloaded")
    attachments_fetched: int = Field(default=0, ge=0, description="Attachments downloaded")
    start_time: datetime = Field(default_factory=datetime.now, description="Run start")
    end_time: datetime | None = Field(default=None, description="Run end")
    errors: list[str] = Field(
        default_factory=list, description="Items skipped because they could not be fetched"
    )
    changes: SyncTree = Field(default_factory=SyncTree, description="Change-set of this run")

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def total_fetched(self) -> int:
        """Get the number of remote documents downloaded."""
        return self.tickets_fetched + self.messages_fetched + self.attachments_fetched

    @property
    def success(self) -> bool:
        """Check if the run completed without skipping anything."""
        return len(self.errors) == 0
