"""Tests for MatchRowStore eligibility filters and row mutations."""

from datetime import date
from pathlib import Path

import pytest

from matchday.delivery import BatchKind, DateRange, MatchRow, MatchStatus
from matchday.rows import MatchRowStore, load_rows_file


def _fixture(match_id: str, day: int, **overrides) -> MatchRow:
    fields = {
        "match_id": match_id,
        "kind": "fixture",
        "date": date(2024, 9, day),
        "time": "14:00",
        "opponent": f"Opponent {match_id}",
        "venue": "Syston Park",
        "home_away": "Home",
        "send": True,
    }
    fields.update(overrides)
    return MatchRow(**fields)


@pytest.fixture
async def rows(tmp_path: Path) -> MatchRowStore:
    store = MatchRowStore(tmp_path / "matches.db")
    yield store
    await store.close()


class TestEligibleRows:
    @pytest.mark.asyncio
    async def test_fixture_filter(self, rows: MatchRowStore) -> None:
        await rows.upsert_many(
            [
                _fixture("F1", 2),
                _fixture("F2", 3, send=False),
                _fixture("F3", 4, posted=True),
                _fixture("F4", 5, status=MatchStatus.POSTPONED),
                _fixture("F5", 6, status=MatchStatus.CANCELLED),
                _fixture("F6", 6, postpone_requested=True),
                _fixture("R1", 2, kind="result", home_score=2, away_score=1),
            ]
        )
        eligible = await rows.get_eligible_rows(BatchKind.FIXTURES, DateRange())
        assert [r.match_id for r in eligible] == ["F1"]

    @pytest.mark.asyncio
    async def test_postponement_filter(self, rows: MatchRowStore) -> None:
        await rows.upsert_many(
            [
                _fixture("F1", 2),
                _fixture("F2", 3, postpone_requested=True),
                _fixture("F3", 4, postpone_requested=True, posted=True),
            ]
        )
        eligible = await rows.get_eligible_rows(BatchKind.POSTPONEMENTS, DateRange())
        assert [r.match_id for r in eligible] == ["F2"]
        assert eligible[0].postpone_requested is True

    @pytest.mark.asyncio
    async def test_result_filter(self, rows: MatchRowStore) -> None:
        await rows.upsert_many(
            [
                _fixture("F1", 2),
                _fixture("R1", 2, kind="result", home_score=3, away_score=0, result="W"),
                _fixture("R2", 3, kind="result", send=False),
            ]
        )
        eligible = await rows.get_eligible_rows(BatchKind.RESULTS, DateRange())
        assert [r.match_id for r in eligible] == ["R1"]
        assert eligible[0].home_score == 3
        assert eligible[0].result == "W"

    @pytest.mark.asyncio
    async def test_date_window_is_inclusive_and_ordered(self, rows: MatchRowStore) -> None:
        await rows.upsert_many(
            [_fixture("F9", 9), _fixture("F1", 1), _fixture("F7", 7), _fixture("F3", 3)]
        )
        window = DateRange(start=date(2024, 9, 3), end=date(2024, 9, 7))
        eligible = await rows.get_eligible_rows(BatchKind.FIXTURES, window)
        assert [r.match_id for r in eligible] == ["F3", "F7"]


class TestMutations:
    @pytest.mark.asyncio
    async def test_mark_posted(self, rows: MatchRowStore) -> None:
        await rows.upsert(_fixture("F1", 2))
        assert await rows.mark_posted("F1") is True
        row = await rows.get("F1")
        assert row is not None and row.posted is True
        assert await rows.mark_posted("missing") is False

    @pytest.mark.asyncio
    async def test_update_status(self, rows: MatchRowStore) -> None:
        await rows.upsert(_fixture("F1", 2))
        assert await rows.update_status("F1", MatchStatus.POSTPONED) is True
        row = await rows.get("F1")
        assert row is not None and row.status == MatchStatus.POSTPONED


def test_date_range_rejects_reversed_bounds() -> None:
    with pytest.raises(ValueError):
        DateRange(start=date(2024, 9, 7), end=date(2024, 9, 1))


def test_load_rows_file(tmp_path: Path) -> None:
    path = tmp_path / "rows.yaml"
    path.write_text(
        """
matches:
  - match_id: F1
    date: 2024-09-07
    time: "15:00"
    opponent: Anstey Nomads
    home_away: Away
    round_id: 3
    send: true
  - match_id: R1
    kind: result
    date: 2024-08-31
    opponent: Barrow Town
    home_score: 2
    away_score: 2
""",
        encoding="utf-8",
    )
    loaded = load_rows_file(path)
    assert [r.match_id for r in loaded] == ["F1", "R1"]
    assert loaded[0].round_id == "3"
    assert loaded[0].date == date(2024, 9, 7)
    assert loaded[1].kind == "result"
