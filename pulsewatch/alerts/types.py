"""Channel-neutral rendering of an AlertPayload."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class AlertField(BaseModel):
    """One labelled value; *short* fields may be laid out side by side."""

    label: str
    value: str
    short: bool = True


class AlertMessage(BaseModel):
    """Normalised alert ready for a channel to put on the wire."""

    label: str
    target_name: str
    url: str
    is_failure: bool
    fields: list[AlertField] = Field(default_factory=list)
    timestamp: datetime

    @property
    def title(self) -> str:
        return f"{self.label}: {self.target_name}"
