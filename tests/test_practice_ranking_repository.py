import uuid
from typing import Any

from db.repositories.practice_ranking_repository import PracticeRankingRepository


class _Result:
    def __init__(self, rows: list[Any]) -> None:
        self._rows = rows

    def all(self) -> list[Any]:
        return list(self._rows)


class RecordingSession:
    def __init__(self) -> None:
        self.added: list[Any] = []
        self.statements: list[Any] = []

    def add(self, instance: Any) -> None:
        self.added.append(instance)

    def flush(self) -> None:
        return None

    def scalars(self, stmt: Any) -> _Result:
        self.statements.append(stmt)
        return _Result([])


def test_pending_runs_record_request_position() -> None:
    session = RecordingSession()
    rows = [{"gbp_location_id": f"locations/{index}"} for index in range(3)]

    runs = PracticeRankingRepository(session).create_pending_runs(
        batch_id=uuid.uuid4(),
        account_id=7,
        domain="brightsmile.example",
        rows=rows,
    )

    assert [run.location_index for run in runs] == [0, 1, 2]
    assert [run.gbp_location_id for run in session.added] == ["locations/0", "locations/1", "locations/2"]


def test_batch_runs_are_ordered_by_location_index() -> None:
    session = RecordingSession()

    PracticeRankingRepository(session).list_batch_runs(uuid.uuid4())

    sql = str(session.statements[0])
    assert "ORDER BY practice_rankings.location_index ASC, practice_rankings.created_at ASC" in sql
