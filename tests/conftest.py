import copy
from datetime import date
from types import SimpleNamespace

import pytest
from bson import ObjectId

from sm2_drill.db import OutlineDocument

TODAY = date(2023, 4, 1)


def _matches(doc, query):
    return all(doc.get(k) == v for k, v in query.items())


class FakeCursor(list):
    def sort(self, key, direction=1):
        return FakeCursor(sorted(self, key=lambda d: d[key], reverse=direction < 0))


class FakeCollection:
    """Just enough of a pymongo Collection for MongoDocumentStore."""

    def __init__(self):
        self.docs = []
        self.update_calls = 0
        self.reads = 0

    def find(self, query=None, projection=None):
        self.reads += 1
        return FakeCursor(copy.deepcopy(d) for d in self.docs if _matches(d, query or {}))

    def find_one(self, query):
        self.reads += 1
        for d in self.docs:
            if _matches(d, query):
                return copy.deepcopy(d)
        return None

    def count_documents(self, query):
        return len([d for d in self.docs if _matches(d, query)])

    def insert_one(self, doc):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    def update_one(self, query, update):
        self.update_calls += 1
        for d in self.docs:
            if _matches(d, query):
                for path, value in update["$set"].items():
                    *parents, last = path.split(".")
                    target = d
                    for p in parents:
                        target = target.setdefault(p, {})
                    target[last] = value
                return SimpleNamespace(matched_count=1)
        return SimpleNamespace(matched_count=0)


class RecordingDocument(OutlineDocument):
    """OutlineDocument that remembers every field write."""

    def __init__(self, entries=None):
        self.writes = []
        super().__init__(entries)

    def set_field(self, entry, name, value):
        self.writes.append((entry, name, value))
        super().set_field(entry, name, value)


@pytest.fixture
def fake_collection():
    return FakeCollection()


@pytest.fixture
def clock():
    return lambda: TODAY


@pytest.fixture
def deck():
    """Three due cards, one not yet due, one with no review date."""
    return RecordingDocument([
        ("France", {"review": "2023-01-01", "history": ""},
         "Capital of France?\n---\nParis"),
        ("Japan", {"review": "2023-03-15", "rep": "2", "interval": "6", "EF": "2.6",
                   "history": "2023-03-09:rate:4"},
         "Capital of Japan?\n---\nTokyo"),
        ("Later", {"review": "2023-05-01", "history": ""},
         "Not due yet?\n---\nNo"),
        ("Loose note", {}, "Just some text"),
        ("Peru", {"review": "2023-03-31", "history": ""},
         "Capital of Peru?\n---\nLima"),
    ])
