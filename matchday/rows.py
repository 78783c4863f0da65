"""SQLite-backed match rows: the fixtures/results table the pipeline posts from."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Protocol, runtime_checkable

import aiosqlite
import yaml

from matchday.delivery.models import BatchKind, DateRange, MatchRow, MatchStatus
from matchday.errors import CollaboratorUnavailable

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS matches (
    match_id            TEXT    PRIMARY KEY,
    kind                TEXT    NOT NULL DEFAULT 'fixture',
    match_date          TEXT    NOT NULL,
    kickoff             TEXT    NOT NULL DEFAULT '',
    opponent            TEXT    NOT NULL,
    venue               TEXT    NOT NULL DEFAULT '',
    competition         TEXT    NOT NULL DEFAULT 'League',
    home_away           TEXT    NOT NULL DEFAULT '',
    home_score          INTEGER,
    away_score          INTEGER,
    result              TEXT    NOT NULL DEFAULT '',
    round_id            TEXT,
    send                INTEGER NOT NULL DEFAULT 0,
    posted              INTEGER NOT NULL DEFAULT 0,
    status              TEXT    NOT NULL DEFAULT 'Scheduled',
    postpone_requested  INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_matches_eligible ON matches(kind, send, posted, match_date);
"""

_COLUMNS = (
    "match_id, kind, match_date, kickoff, opponent, venue, competition, home_away, "
    "home_score, away_score, result, round_id, send, posted, status, postpone_requested"
)

# Row predicates per batch kind; date window and ordering are appended by the query
_ELIGIBLE: dict[BatchKind, str] = {
    BatchKind.FIXTURES: (
        "kind = 'fixture' AND send = 1 AND posted = 0 "
        "AND status NOT IN ('Postponed', 'Cancelled') AND postpone_requested = 0"
    ),
    BatchKind.RESULTS: (
        "kind = 'result' AND send = 1 AND posted = 0 "
        "AND status NOT IN ('Postponed', 'Cancelled')"
    ),
    BatchKind.POSTPONEMENTS: (
        "kind = 'fixture' AND send = 1 AND posted = 0 "
        "AND status NOT IN ('Postponed', 'Cancelled') AND postpone_requested = 1"
    ),
}


@runtime_checkable
class RowStore(Protocol):
    """Row-data collaborator consumed by the delivery pipeline."""

    async def get_eligible_rows(self, kind: BatchKind, date_range: DateRange) -> list[MatchRow]: ...

    async def mark_posted(self, match_id: str) -> bool: ...

    async def update_status(self, match_id: str, status: MatchStatus) -> bool: ...


def _row_to_match(row: tuple) -> MatchRow:
    return MatchRow(
        match_id=row[0],
        kind=row[1],
        date=row[2],
        time=row[3],
        opponent=row[4],
        venue=row[5],
        competition=row[6],
        home_away=row[7],
        home_score=row[8],
        away_score=row[9],
        result=row[10],
        round_id=row[11],
        send=bool(row[12]),
        posted=bool(row[13]),
        status=row[14],
        postpone_requested=bool(row[15]),
    )


class MatchRowStore:
    """SQLite match table. One connection per instance."""

    def __init__(self, db_path: Path, busy_timeout: int = 5000) -> None:
        self._db_path = db_path
        self._busy_timeout = busy_timeout
        self._conn: aiosqlite.Connection | None = None

    async def _ensure_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = await aiosqlite.connect(str(self._db_path))
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.execute(f"PRAGMA busy_timeout={self._busy_timeout}")
            await self._conn.executescript(_SCHEMA)
            await self._conn.commit()
        return self._conn

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        try:
            yield await self._ensure_conn()
        except (aiosqlite.Error, OSError) as e:
            logger.error("row store %s failed: %s", operation, e)
            raise CollaboratorUnavailable("row store", e) from e

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def upsert(self, row: MatchRow) -> None:
        await self.upsert_many([row])

    async def upsert_many(self, rows: list[MatchRow]) -> int:
        async with self._guard("upsert") as conn:
            await conn.executemany(
                f"INSERT OR REPLACE INTO matches ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        r.match_id,
                        r.kind,
                        r.date.isoformat(),
                        r.time,
                        r.opponent,
                        r.venue,
                        r.competition,
                        r.home_away,
                        r.home_score,
                        r.away_score,
                        r.result,
                        r.round_id,
                        int(r.send),
                        int(r.posted),
                        r.status.value,
                        int(r.postpone_requested),
                    )
                    for r in rows
                ],
            )
            await conn.commit()
        return len(rows)

    async def get(self, match_id: str) -> MatchRow | None:
        async with self._guard("get") as conn:
            cursor = await conn.execute(
                f"SELECT {_COLUMNS} FROM matches WHERE match_id = ?", (match_id,)
            )
            row = await cursor.fetchone()
        return _row_to_match(row) if row else None

    async def get_eligible_rows(self, kind: BatchKind, date_range: DateRange) -> list[MatchRow]:
        """Rows with the send flag set, not yet posted, matching kind's predicate, in window."""
        clauses = [_ELIGIBLE[kind]]
        params: list[Any] = []
        if date_range.start:
            clauses.append("match_date >= ?")
            params.append(date_range.start.isoformat())
        if date_range.end:
            clauses.append("match_date <= ?")
            params.append(date_range.end.isoformat())
        async with self._guard("get_eligible_rows") as conn:
            cursor = await conn.execute(
                f"SELECT {_COLUMNS} FROM matches WHERE {' AND '.join(clauses)} "
                "ORDER BY match_date, kickoff, match_id",
                params,
            )
            rows = await cursor.fetchall()
        return [_row_to_match(r) for r in rows]

    async def mark_posted(self, match_id: str) -> bool:
        async with self._guard("mark_posted") as conn:
            cursor = await conn.execute(
                "UPDATE matches SET posted = 1 WHERE match_id = ?", (match_id,)
            )
            await conn.commit()
        return (cursor.rowcount or 0) > 0

    async def update_status(self, match_id: str, status: MatchStatus) -> bool:
        async with self._guard("update_status") as conn:
            cursor = await conn.execute(
                "UPDATE matches SET status = ? WHERE match_id = ?",
                (MatchStatus(status).value, match_id),
            )
            await conn.commit()
        return (cursor.rowcount or 0) > 0


def load_rows_file(path: Path) -> list[MatchRow]:
    """Read match rows from a YAML file: a list of mappings, or {'matches': [...]}."""
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or []
    if isinstance(data, dict):
        data = data.get("matches") or []
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of matches")
    return [MatchRow.model_validate(item) for item in data]
