"""Pydantic models for registration tickets, messages and attachments."""

from pydantic import BaseModel, Field


class Attachment(BaseModel):
    """Metadata of a file attached to a ticket message.

    The payload itself is streamed straight to disk and never held here.
    """

    id: str = Field(default=..., min_length=1, description="Identifier unique within its message")
    filename: str = Field(default="attachment", description="Original file name")


class Message(BaseModel):
    """A message posted to a ticket."""

    id: str = Field(default=..., min_length=1, description="Identifier unique within its ticket")
    subject: str | None = Field(default=None, description="Message subject")
    category: str | None = Field(default=None, description="Message category, e.g. NONE or JUSTIFICATION")
    created: str | None = Field(default=None, description="Creation timestamp as reported")
    text: list[str] = Field(default_factory=list, description="Message body, one entry per line")
    attachments: list[Attachment] = Field(default_factory=list, description="Attached files")

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "3981",
                "subject": "Re: network request",
                "category": "NONE",
                "text": ["Please see the attached justification."],
                "attachments": [{"id": "77", "filename": "plan.pdf"}],
            }
        }
    }


class Ticket(BaseModel):
    """A registration ticket.

    Timestamps are kept exactly as the service reports them so that the
    ``updated`` value can be compared verbatim against the stored one.
    """

    ticket_no: str = Field(default=..., min_length=1, description="Unique ticket number")
    ticket_type: str | None = Field(default=None, description="Web ticket type")
    status: str | None = Field(default=None, description="Web ticket status")
    resolution: str | None = Field(default=None, description="Web ticket resolution")
    created: str | None = Field(default=None, description="Creation timestamp")
    resolved: str | None = Field(default=None, description="Resolution timestamp")
    closed: str | None = Field(default=None, description="Closing timestamp")
    updated: str | None = Field(default=None, description="Last update timestamp")
    messages: list[Message] = Field(default_factory=list, description="Messages, oldest first")

    model_config = {
        "json_schema_extra": {
            "example": {
                "ticket_no": "20230002",
                "ticket_type": "IPV4_SIMPLE_REASSIGN",
                "status": "PENDING_REVIEW",
                "created": "2023-01-30T10:00:00.000-05:00",
                "updated": "2023-02-01T08:12:44.000-05:00",
            }
        }
    }

    def summary(self) -> "Ticket":
        """Return a copy of this ticket without its messages."""
        return self.model_copy(update={"messages": []})
