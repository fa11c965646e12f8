"""Dataclasses for Layer 4 email delivery."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Literal

RecipientType = Literal["student", "parent"]


@dataclass(slots=True)
class ReportEmail:
    """Rendered email ready for a transport."""

    sender: str
    recipient: str
    subject: str
    html: str
    text: str


@dataclass(frozen=True, slots=True)
class EmailDispatchResult:
    """Outcome of a single delivery attempt. Attached to the response, never raised."""

    success: bool
    message_id: str | None = None
    recipient: str | None = None
    error: str | None = None
    # Set when the transport only logged the email.
    dry_run: bool | None = None

    @property
    def delivered(self) -> bool:
        return self.success and not self.dry_run

    @classmethod
    def sent(cls, message_id: str, recipient: str, dry_run: bool = False) -> "EmailDispatchResult":
        return cls(success=True, message_id=message_id, recipient=recipient, dry_run=dry_run or None)

    @classmethod
    def failed(cls, error: str, recipient: str | None = None) -> "EmailDispatchResult":
        return cls(success=False, recipient=recipient, error=error or "Unknown email error")

    def as_dict(self) -> Dict:
        return {key: value for key, value in asdict(self).items() if value is not None}
