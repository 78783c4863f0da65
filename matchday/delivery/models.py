"""Delivery data models: match rows, batch payloads, attempts and tagged results."""

from datetime import date
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from matchday.errors import BatchValidationError

MAX_BATCH_ITEMS = 5


class BatchKind(str, Enum):
    FIXTURES = "fixtures"
    RESULTS = "results"
    POSTPONEMENTS = "postponements"


class MatchStatus(str, Enum):
    SCHEDULED = "Scheduled"
    PLAYED = "Played"
    POSTPONED = "Postponed"
    CANCELLED = "Cancelled"


class DateRange(BaseModel):
    """Inclusive date window. Either bound may be open."""

    start: date | None = None
    end: date | None = None

    @model_validator(mode="after")
    def _ordered(self) -> "DateRange":
        if self.start and self.end and self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")
        return self

    def contains(self, day: date) -> bool:
        if self.start and day < self.start:
            return False
        if self.end and day > self.end:
            return False
        return True


class MatchRow(BaseModel):
    """One fixture or result row as held by the row store."""

    match_id: str
    kind: Literal["fixture", "result"] = "fixture"
    date: date
    time: str = ""
    opponent: str
    venue: str = ""
    competition: str = "League"
    home_away: Literal["Home", "Away", ""] = ""
    home_score: int | None = None
    away_score: int | None = None
    result: str = ""
    round_id: str | None = None
    send: bool = False
    posted: bool = False
    status: MatchStatus = MatchStatus.SCHEDULED
    postpone_requested: bool = False

    @field_validator("round_id", mode="before")
    @classmethod
    def _round_as_str(cls, v: Any) -> Any:
        return None if v is None else str(v)

    def to_item(self) -> dict[str, Any]:
        """Shape used inside fixtures_list / results_list."""
        item: dict[str, Any] = {
            "match_id": self.match_id,
            "date": self.date.isoformat(),
            "time": self.time,
            "opponent": self.opponent,
            "venue": self.venue,
            "competition": self.competition,
            "home_away": self.home_away,
        }
        if self.kind == "result":
            item["home_score"] = self.home_score
            item["away_score"] = self.away_score
            item["result"] = self.result
        if self.postpone_requested:
            item["status"] = MatchStatus.POSTPONED.value
        return item


class BatchMetadata(BaseModel):
    round_id: str | None = None
    season: str = ""
    generated_at: str


class BatchPayload(BaseModel):
    """Bounded (1..5 items) bundle of rows shaped for one outbound delivery."""

    event_type: str
    items: list[dict[str, Any]]
    metadata: BatchMetadata
    batch_id: str

    @model_validator(mode="before")
    @classmethod
    def _within_cap(cls, data: Any) -> Any:
        items = data.get("items") if isinstance(data, dict) else None
        count = len(items or [])
        if count < 1:
            raise BatchValidationError("batch must contain at least one item")
        if count > MAX_BATCH_ITEMS:
            raise BatchValidationError(
                f"too many eligible rows: {count} (max {MAX_BATCH_ITEMS})"
            )
        return data


class DeliveryAttempt(BaseModel):
    attempt_number: int
    http_status: int | None = None
    succeeded: bool
    timestamp_ms: int
    error: str | None = None


class LiveMatchEvent(BaseModel):
    """A single in-match event (goal, card, status change) to post immediately."""

    match_id: str
    event_type: str
    minute: int | None = Field(default=None, ge=0, le=120)
    player: str | None = None
    assist: str | None = None
    card_type: str | None = None
    opponent: str | None = None
    home_score: int | None = None
    away_score: int | None = None
    notes: str | None = None


Outcome = Literal["ok", "duplicate", "invalid", "failed"]


class DeliveryResult(BaseModel):
    """Structured result returned by every pipeline entry point.

    outcome tags the variant: ok, duplicate, invalid or failed.
    """

    outcome: Outcome
    success: bool
    duplicate: bool = False
    simulated: bool = False
    error: str | None = None
    event_type: str | None = None
    idempotency_key: str | None = None
    batch_id: str | None = None
    count: int = 0
    http_status: int | None = None
    attempt: int | None = None
    response_body: str | None = None
    attempts: list[DeliveryAttempt] = Field(default_factory=list)

    @classmethod
    def ok(cls, **fields: Any) -> "DeliveryResult":
        return cls(outcome="ok", success=True, **fields)

    @classmethod
    def duplicate_of(cls, key: str, **fields: Any) -> "DeliveryResult":
        return cls(outcome="duplicate", success=True, duplicate=True, idempotency_key=key, **fields)

    @classmethod
    def invalid(cls, reason: str, **fields: Any) -> "DeliveryResult":
        return cls(outcome="invalid", success=False, error=reason, **fields)

    @classmethod
    def failed(cls, reason: str, **fields: Any) -> "DeliveryResult":
        return cls(outcome="failed", success=False, error=reason, **fields)
