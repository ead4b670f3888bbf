from types import SimpleNamespace

from bson import ObjectId

from app.repositories.result_repository import ResultRepository
from app.schemas.result import GroupKey

from conftest import make_result


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs
        self.sort_spec = None

    def sort(self, key, direction=None):
        self.sort_spec = key if direction is None else [(key, direction)]
        return self

    def __aiter__(self):
        self._iter = iter(self.docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    """Records the calls ResultRepository makes against a Motor collection."""

    def __init__(self):
        self.docs = []
        self.calls = []

    def _match(self, query):
        def matches(doc):
            for k, v in query.items():
                if isinstance(v, dict) and "$regex" in v:
                    if v["$regex"].lower() not in str(doc.get(k, "")).lower():
                        return False
                elif doc.get(k) != v:
                    return False
            return True
        return [dict(d) for d in self.docs if matches(d)]

    def find(self, query):
        self.calls.append(("find", query))
        return FakeCursor(self._match(query))

    async def find_one(self, query, sort=None):
        self.calls.append(("find_one", query))
        found = self._match(query)
        return found[0] if found else None

    async def insert_one(self, doc):
        doc = dict(doc, _id=ObjectId())
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def replace_one(self, query, doc, upsert=False):
        self.calls.append(("replace_one", query, upsert))
        self.docs = [d for d in self.docs if d["_id"] != query["_id"]]
        self.docs.append(dict(doc, _id=query["_id"]))

    async def delete_one(self, query):
        before = len(self.docs)
        self.docs = [d for d in self.docs if d["_id"] != query["_id"]]
        return SimpleNamespace(deleted_count=before - len(self.docs))

    async def create_index(self, keys, **kwargs):
        self.calls.append(("create_index", keys, kwargs))


async def test_save_inserts_then_replaces():
    collection = FakeCollection()
    repo = ResultRepository(collection)
    saved = await repo.save(make_result(1, 50))
    assert ObjectId.is_valid(saved.id)
    stored = collection.docs[0]
    assert stored["class"] == "V" and stored["examTerm"] == "Final"
    assert "id" not in stored and "issues" not in stored

    await repo.save(saved.model_copy(update={"rank": 3}))
    assert len(collection.docs) == 1
    assert collection.docs[0]["rank"] == 3
    assert collection.calls[-1] == ("replace_one", {"_id": ObjectId(saved.id)}, True)


async def test_find_by_group_filters_on_peer_key():
    collection = FakeCollection()
    repo = ResultRepository(collection)
    await repo.save(make_result(1, 50))
    await repo.save(make_result(2, 60, section="B"))
    members = await repo.find_by_group(GroupKey("V", "A", "Final"))
    assert [m.roll_number for m in members] == ["1"]
    assert collection.calls[-1] == ("find", {"class": "V", "section": "A", "examTerm": "Final"})


async def test_find_by_id_and_delete():
    repo = ResultRepository(FakeCollection())
    saved = await repo.save(make_result(1, 50))
    assert (await repo.find_by_id(saved.id)).roll_number == "1"
    assert await repo.find_by_id("not-an-object-id") is None
    assert await repo.delete_by_key(saved.id) is True
    assert await repo.delete_by_key(saved.id) is False
    assert await repo.delete_by_key("not-an-object-id") is False


async def test_find_by_natural_key():
    repo = ResultRepository(FakeCollection())
    await repo.save(make_result(7, 50))
    found = await repo.find_by_natural_key(make_result(7, 99))
    assert found is not None and found.total == 0
    assert await repo.find_by_natural_key(make_result(8, 99)) is None


async def test_find_uses_case_insensitive_name_and_skips_empty_filters():
    collection = FakeCollection()
    repo = ResultRepository(collection)
    await repo.save(make_result(1, 50, name="Asha Verma"))
    results = await repo.find({"name": "asha", "rollNumber": None})
    assert [r.name for r in results] == ["Asha Verma"]
    assert collection.calls[-1] == ("find", {"name": {"$regex": "asha", "$options": "i"}})


async def test_natural_identity_adds_unique_index():
    collection = FakeCollection()
    await ResultRepository(collection).ensure_indexes("natural")
    names = {call[2]["name"]: call[2].get("unique", False) for call in collection.calls}
    assert names == {"peer_group": False, "natural_key": True}
