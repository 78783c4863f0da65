"""Batch variants: fixtures, results and postponements.

All variants share the pipeline's state machine. They differ only in the row
filter (applied by the row store), the payload shape and the row mutation that
follows a successful delivery.
"""

import random
import string
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from matchday.delivery.models import (
    BatchKind,
    BatchMetadata,
    BatchPayload,
    MatchRow,
    MatchStatus,
)


@dataclass(frozen=True)
class BatchSpec:
    kind: BatchKind
    count_field: str
    list_field: str
    # None: event type is "<prefix>_<n>_league" for n items
    fixed_event_type: str | None = None
    event_prefix: str = ""
    mark_status: MatchStatus | None = None

    def event_type(self, count: int) -> str:
        if self.fixed_event_type:
            return self.fixed_event_type
        return f"{self.event_prefix}_{count}_league"


BATCH_SPECS: dict[BatchKind, BatchSpec] = {
    BatchKind.FIXTURES: BatchSpec(
        kind=BatchKind.FIXTURES,
        count_field="fixture_count",
        list_field="fixtures_list",
        event_prefix="fixtures",
    ),
    BatchKind.RESULTS: BatchSpec(
        kind=BatchKind.RESULTS,
        count_field="result_count",
        list_field="results_list",
        event_prefix="results",
    ),
    BatchKind.POSTPONEMENTS: BatchSpec(
        kind=BatchKind.POSTPONEMENTS,
        count_field="fixture_count",
        list_field="fixtures_list",
        fixed_event_type="match_postponed_league",
        mark_status=MatchStatus.POSTPONED,
    ),
}


def new_batch_id(event_type: str, now: float | None = None) -> str:
    """'<event_type>_<epoch_ms>_<random5>'."""
    epoch_ms = int((time.time() if now is None else now) * 1000)
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=5))
    return f"{event_type}_{epoch_ms}_{suffix}"


def iso_timestamp(now: float | None = None) -> str:
    moment = datetime.fromtimestamp(time.time() if now is None else now, tz=timezone.utc)
    return moment.isoformat().replace("+00:00", "Z")


def build_batch(
    spec: BatchSpec,
    rows: list[MatchRow],
    round_id: str | None,
    season: str,
    now: float | None = None,
) -> BatchPayload:
    """Build a payload from eligible rows. Raises BatchValidationError outside 1..5."""
    event_type = spec.event_type(len(rows))
    return BatchPayload(
        event_type=event_type,
        items=[row.to_item() for row in rows],
        metadata=BatchMetadata(
            round_id=round_id, season=season, generated_at=iso_timestamp(now)
        ),
        batch_id=new_batch_id(event_type, now),
    )


def wire_body(
    spec: BatchSpec,
    payload: BatchPayload,
    club_name: str,
    system_version: str,
) -> dict[str, Any]:
    """JSON body posted to the automation webhook."""
    return {
        "event_type": payload.event_type,
        "system_version": system_version,
        "club_name": club_name,
        spec.count_field: len(payload.items),
        spec.list_field: payload.items,
        "round_id": payload.metadata.round_id,
        "season": payload.metadata.season,
        "timestamp": payload.metadata.generated_at,
        "batch_id": payload.batch_id,
    }
