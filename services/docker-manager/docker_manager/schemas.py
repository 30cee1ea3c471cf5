import enum
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class JobState(str, enum.Enum):
    """Lifecycle of a single dequeued item inside the listener."""
    RECEIVED = "received"
    VALIDATED = "validated"
    LAUNCHING = "launching"
    LAUNCHED = "launched"
    EXHAUSTED = "exhausted"
    SKIPPED = "skipped"    # informational item, not a join request
    REJECTED = "rejected"  # join-shaped but invalid


class JoinMeetingPayload(BaseModel):
    """A request to record one meeting for one user, as pushed by the HTTP API."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(..., alias="userId", description="ID of the user who requested the recording.")
    link: str = Field(..., description="Meeting URL the recorder should join.")
    recording_id: Optional[str] = Field(None, alias="recordingId", description="ID of the persisted recording row.")
    timestamp: Optional[str] = Field(None, description="When the join was requested (ISO8601).")
    max_duration_mins: Optional[float] = Field(
        None, alias="maxDurationMins", gt=0, allow_inf_nan=False, description="Upper bound on recording length, in minutes."
    )

    @field_validator("user_id", "link")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class QueueItem:
    """One element popped off a Redis list."""
    queue: str
    raw: str

    def decode(self) -> Any:
        # Producers are expected to push JSON, but anything else is passed through as text
        try:
            return json.loads(self.raw)
        except ValueError:
            return self.raw


def looks_like_join_payload(value: Any) -> bool:
    return isinstance(value, dict) and "userId" in value and "link" in value
