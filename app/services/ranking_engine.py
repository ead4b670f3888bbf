"""Result ranking engine.

Derived fields (total, percent, pass/fail) are a pure function of one
record; ranks are a pure function of a peer group. ``RankingEngine`` ties
the two to a result store: one read of the group, one compute, one batch of
writes, all under a per-group lock so concurrent saves to the same
class/section/term cannot interleave their snapshots.
"""
import asyncio
import logging
import math
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Dict, Iterable, List, Optional, Protocol, Set

from pydantic import BaseModel, Field

from app.core.exceptions import PersistenceFailure, RankingError, ResultNotFound, ResultValidationError
from app.schemas.result import GroupKey, RankingPolicy, StudentResult

logger = logging.getLogger("ranking_engine")

PASS = "Pass"
FAIL = "Fail"

REQUIRED_FIELDS = {
    "name": "name",
    "roll_number": "rollNumber",
    "class_name": "class",
    "section": "section",
    "exam_term": "examTerm",
}


class ResultStore(Protocol):
    async def find_by_group(self, key: GroupKey) -> List[StudentResult]: ...

    async def find_by_id(self, result_id: str) -> Optional[StudentResult]: ...

    async def find_by_natural_key(self, record: StudentResult) -> Optional[StudentResult]: ...

    async def save(self, record: StudentResult) -> StudentResult: ...

    async def delete_by_key(self, result_id: str) -> bool: ...


class RankingOutcome(BaseModel):
    record: Optional[StudentResult] = None
    affected: List[StudentResult] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)


def _as_number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def validate_result(record: StudentResult):
    missing = [alias for field, alias in REQUIRED_FIELDS.items()
               if not str(getattr(record, field) or "").strip()]
    if not record.subjects:
        missing.append("subjects")
    if missing:
        raise ResultValidationError(missing)


def recompute_derived(record: StudentResult, policy: RankingPolicy = None) -> StudentResult:
    """Return a copy of ``record`` with total, percent and pass/fail refreshed.

    Missing or non-numeric marks count as 0 and are listed in ``issues``;
    a zero or negative maximum yields percent 0.
    """
    policy = policy or RankingPolicy()
    total = 0.0
    failed = 0
    issues = []
    for index, subject in enumerate(record.subjects):
        value = _as_number(subject.marks)
        if value is None:
            issues.append(f"subjects[{index}] {subject.name or '<unnamed>'}: "
                          f"marks {subject.marks!r} is not a number, counted as 0")
            value = 0.0
        total += value
        if value < policy.pass_marks:
            failed += 1

    if policy.full_marks_scope == "result":
        max_possible = record.full_marks
    else:
        max_possible = len(record.subjects) * record.full_marks
    percent = (total / max_possible) * 100 if max_possible > 0 else 0.0

    if issues:
        logger.warning("Result %s (%s): %d malformed subject mark(s)",
                       record.id or record.roll_number, record.group_key, len(issues))

    return record.model_copy(update={
        "total": total,
        "percent": percent,
        "failed_subjects_count": failed,
        "pass_fail": PASS if record.subjects and failed == 0 else FAIL,
        "issues": issues,
    })


def rerank_group(group_key: GroupKey, members: Iterable[StudentResult],
                 policy: RankingPolicy = None) -> List[StudentResult]:
    """Rank ``members`` by (percent desc, total desc).

    The sort is stable: equal (percent, total) keep their input order. With
    ``policy.exclude_failed`` failing members get rank 0 and the rest are
    ranked among themselves.
    """
    policy = policy or RankingPolicy()
    members = list(members)
    for member in members:
        if member.group_key != group_key:
            raise ResultValidationError(
                message=f"Result {member.id} belongs to {member.group_key}, not {group_key}")

    if policy.exclude_failed:
        ranked = [m for m in members if m.pass_fail != FAIL]
        excluded = [m for m in members if m.pass_fail == FAIL]
    else:
        ranked, excluded = members, []

    ordered = sorted(ranked, key=lambda m: (-m.percent, -m.total))
    result = [m.model_copy(update={"rank": index + 1}) for index, m in enumerate(ordered)]
    result.extend(m.model_copy(update={"rank": 0}) for m in excluded)
    return result


class RankingEngine:
    def __init__(self, store: ResultStore, policy: RankingPolicy = None):
        self.store = store
        self.policy = policy or RankingPolicy()
        # One lock per group ever touched, never pruned; class/section/term keys stay few
        self._locks: Dict[GroupKey, asyncio.Lock] = {}

    @asynccontextmanager
    async def _locked(self, keys: Set[GroupKey]):
        # Sorted acquisition so a save moving A->B and one moving B->A cannot deadlock
        async with AsyncExitStack() as stack:
            for key in sorted(keys):
                await stack.enter_async_context(self._locks.setdefault(key, asyncio.Lock()))
            yield

    async def _read(self, awaitable, what: str, written: List[str] = None):
        try:
            return await awaitable
        except RankingError:
            raise
        except Exception as exc:
            logger.error("Reading %s failed: %s", what, exc)
            raise PersistenceFailure(f"Could not read {what}: {exc}", written=written) from exc

    async def _find_previous(self, record: StudentResult) -> Optional[StudentResult]:
        if self.policy.identity == "surrogate" and record.id:
            previous = await self._read(self.store.find_by_id(record.id), f"result {record.id}")
            if previous is None:
                raise ResultNotFound(record.id)
            return previous
        return await self._read(self.store.find_by_natural_key(record), f"result {record.natural_key}")

    @staticmethod
    def _group_keys(record: StudentResult, previous: Optional[StudentResult]) -> Set[GroupKey]:
        keys = {record.group_key}
        if previous is not None:
            keys.add(previous.group_key)
        return keys

    async def _persist(self, records: List[StudentResult], written: List[str], failed: List[str]) -> List[StudentResult]:
        saved = []
        for record in records:
            try:
                stored = await self.store.save(record)
            except Exception as exc:
                logger.error("Writing result %s (%s) failed: %s", record.id, record.group_key, exc)
                failed.append(record.id)
                continue
            written.append(stored.id)
            saved.append(stored)
        return saved

    async def _rerank_stored(self, key: GroupKey, written: List[str], failed: List[str]) -> List[StudentResult]:
        """Re-rank a group exactly as stored and write back members whose derived fields moved."""
        peers = await self._read(self.store.find_by_group(key), f"group {key}", written)
        current = [recompute_derived(p, self.policy) for p in peers]
        ranked = rerank_group(key, current, self.policy)
        before = {p.id: p.derived() for p in peers}
        changed = [m for m in ranked if before.get(m.id) != m.derived()]
        logger.debug("Group %s: %d member(s), %d rank change(s)", key, len(ranked), len(changed))
        return await self._persist(changed, written, failed)

    async def on_save(self, record: StudentResult) -> RankingOutcome:
        validate_result(record)
        while True:
            previous = await self._find_previous(record)
            keys = self._group_keys(record, previous)
            async with self._locked(keys):
                current = await self._find_previous(record)
                if self._group_keys(record, current) != keys:
                    # Stored version moved groups between lookup and lock
                    continue
                return await self._save_locked(record, current)

    async def _save_locked(self, record: StudentResult, previous: Optional[StudentResult]) -> RankingOutcome:
        record = recompute_derived(record, self.policy)
        issues = record.issues
        # An id with no stored match (natural identity, changed key) is a new record, not a move
        record = record.model_copy(update={"id": previous.id if previous is not None else None})
        key = record.group_key
        written, failed = [], []

        peers = await self._read(self.store.find_by_group(key), f"group {key}")
        before = {}
        members = []
        for peer in peers:
            if record.id is not None and peer.id == record.id:
                continue
            before[peer.id] = peer.derived()
            members.append(recompute_derived(peer, self.policy))
        # Updated records keep their stored position so tie order survives an edit
        position = next((i for i, p in enumerate(peers) if record.id is not None and p.id == record.id), None)
        if position is None:
            members.append(record)
        else:
            members.insert(position, record)

        ranked = rerank_group(key, members, self.policy)
        incoming = next(m for m in ranked if m.id == record.id)
        changed = [m for m in ranked if m is not incoming and before.get(m.id) != m.derived()]

        try:
            saved = await self.store.save(incoming)
        except Exception as exc:
            logger.error("Writing result %s (%s) failed: %s", incoming.id, key, exc)
            raise PersistenceFailure(f"Could not save result: {exc}", written=written,
                                     failed=[incoming.id] if incoming.id else []) from exc
        written.append(saved.id)
        affected = [saved] + await self._persist(changed, written, failed)

        if previous is not None and previous.group_key != key:
            logger.info("Result %s moved from %s to %s", saved.id, previous.group_key, key)
            affected += await self._rerank_stored(previous.group_key, written, failed)

        if failed:
            raise PersistenceFailure(f"{len(failed)} peer write(s) failed while ranking {key}",
                                     written=written, failed=failed)
        logger.info("Saved result %s in %s, rank %d, %d record(s) written",
                    saved.id, key, saved.rank, len(written))
        return RankingOutcome(record=saved.model_copy(update={"issues": issues}), affected=affected, issues=issues)

    async def on_delete(self, result_id: str) -> RankingOutcome:
        while True:
            record = await self._read(self.store.find_by_id(result_id), f"result {result_id}")
            if record is None:
                raise ResultNotFound(result_id)
            key = record.group_key
            async with self._locked({key}):
                record = await self._read(self.store.find_by_id(result_id), f"result {result_id}")
                if record is None:
                    raise ResultNotFound(result_id)
                if record.group_key != key:
                    # Moved to another group between lookup and lock
                    continue
                return await self._delete_locked(record)

    async def _delete_locked(self, record: StudentResult) -> RankingOutcome:
        result_id = record.id
        key = record.group_key
        written, failed = [], []
        try:
            deleted = await self.store.delete_by_key(result_id)
        except Exception as exc:
            logger.error("Deleting result %s failed: %s", result_id, exc)
            raise PersistenceFailure(f"Could not delete result {result_id}: {exc}", failed=[result_id]) from exc
        if not deleted:
            raise ResultNotFound(result_id)
        affected = await self._rerank_stored(key, written, failed)
        if failed:
            raise PersistenceFailure(f"{len(failed)} peer write(s) failed while ranking {key}",
                                     written=written, failed=failed)
        logger.info("Deleted result %s from %s, %d peer(s) re-ranked", result_id, key, len(affected))
        return RankingOutcome(record=record, affected=affected)
