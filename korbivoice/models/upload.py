"""Data models for webhook uploads and their results."""

from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WebhookItem(BaseModel):
    """A shopping-list item suggested by the webhook."""
    model_config = ConfigDict(extra="ignore")

    name: str
    quantity_text: Optional[str] = None
    unit: Optional[str] = None


class WebhookResponse(BaseModel):
    """JSON body returned by the transcription webhook."""
    model_config = ConfigDict(extra="ignore")

    status: str
    transcript: Optional[str] = None
    message: Optional[str] = None
    items: List[WebhookItem] = Field(default_factory=list)


@dataclass
class SuggestedItem:
    """Item extracted from a transcript."""
    name: str
    quantity_text: Optional[str] = None
    unit: Optional[str] = None


@dataclass
class UploadResult:
    """Outcome of one upload attempt, consumed once by the controller."""
    ok: bool
    transcript: Optional[str] = None
    message: Optional[str] = None
    suggested_items: List[SuggestedItem] = field(default_factory=list)

    @classmethod
    def from_webhook(cls, response: WebhookResponse) -> "UploadResult":
        items = [
            SuggestedItem(name=item.name, quantity_text=item.quantity_text, unit=item.unit)
            for item in response.items
        ]
        return cls(
            ok=response.status == "ok",
            transcript=response.transcript,
            message=response.message,
            suggested_items=items,
        )
