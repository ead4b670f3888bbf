import asyncio
import itertools
from typing import Dict, List, Optional

import pytest

from app.schemas.result import GroupKey, RankingPolicy, StudentResult
from app.services.ranking_engine import RankingEngine


class InMemoryResultStore:
    """ResultStore double; dict order stands in for Mongo's _id order."""

    def __init__(self):
        self.docs: Dict[str, StudentResult] = {}
        self.writes: List[str] = []
        self.fail_writes_for = set()
        self.fail_all_writes = False
        self.fail_reads = False
        self._ids = itertools.count(1)

    async def find_by_group(self, key: GroupKey) -> List[StudentResult]:
        await asyncio.sleep(0)
        if self.fail_reads:
            raise ConnectionError("store unavailable")
        return [r for r in self.docs.values() if r.group_key == key]

    async def find_by_id(self, result_id: str) -> Optional[StudentResult]:
        if self.fail_reads:
            raise ConnectionError("store unavailable")
        return self.docs.get(result_id)

    async def find_by_natural_key(self, record: StudentResult) -> Optional[StudentResult]:
        if self.fail_reads:
            raise ConnectionError("store unavailable")
        return next((r for r in self.docs.values() if r.natural_key == record.natural_key), None)

    async def find(self, filters: dict) -> List[StudentResult]:
        wanted = {k: v for k, v in filters.items() if v}
        matches = [r for r in self.docs.values()
                   if all(r.model_dump(by_alias=True).get(k) == v for k, v in wanted.items())]
        return sorted(matches, key=lambda r: r.rank)

    async def save(self, record: StudentResult) -> StudentResult:
        await asyncio.sleep(0)
        if self.fail_all_writes or (record.id and record.id in self.fail_writes_for):
            raise ConnectionError(f"write rejected for {record.id}")
        if not record.id:
            record = record.model_copy(update={"id": f"{next(self._ids):024x}"})
        self.docs[record.id] = record.model_copy(update={"issues": []})
        self.writes.append(record.id)
        return record

    async def delete_by_key(self, result_id: str) -> bool:
        return self.docs.pop(result_id, None) is not None

    def group(self, class_name="V", section="A", exam_term="Final") -> List[StudentResult]:
        key = GroupKey(class_name, section, exam_term)
        return [r for r in self.docs.values() if r.group_key == key]


def make_result(roll, *marks, name=None, class_name="V", section="A", exam_term="Final",
                full_marks=100, **extra) -> StudentResult:
    return StudentResult(
        name=name or f"Student {roll}",
        roll_number=str(roll),
        dob="2014-01-01",
        class_name=class_name,
        section=section,
        exam_term=exam_term,
        full_marks=full_marks,
        subjects=[{"name": f"Subject {i + 1}", "marks": m} for i, m in enumerate(marks)],
        **extra
    )


def assert_ranks_consistent(members: List[StudentResult]):
    ordered = sorted(members, key=lambda m: (-m.percent, -m.total))
    assert [m.rank for m in ordered] == list(range(1, len(ordered) + 1))


@pytest.fixture
def store():
    return InMemoryResultStore()


@pytest.fixture
def policy():
    return RankingPolicy()


@pytest.fixture
def engine(store, policy):
    return RankingEngine(store, policy)
