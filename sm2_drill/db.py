"""
Document stores holding the cards.

Every store is an ordered outline of entries; each entry has a heading,
an ordered set of string properties and a free-text body whose question
and answer are split by a line reading exactly "---".
"""

import itertools
import logging
from collections import namedtuple
from dataclasses import dataclass, field
from typing import Dict

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient

from sm2_drill.errors import UnknownEntryError

logger = logging.getLogger(__name__)

DELIMITER = "---"

# Character offsets of one entry inside DocumentStore.text()
Span = namedtuple("Span", ["start", "body_start", "split", "end"])


def split_body(body):
    """Split a body into (question, answer) on the first "---" line."""
    lines = body.split("\n")
    for i, line in enumerate(lines):
        if line == DELIMITER:
            return "\n".join(lines[:i]), "\n".join(lines[i + 1:])
    return body, ""


def has_delimiter(text):
    return DELIMITER in text.split("\n")


def join_body(question, answer):
    """
    Build a body from its two halves.
    A question holding its own "---" line could not be split back, so it is refused.
    """
    if has_delimiter(question):
        raise ValueError(f"Question cannot contain a line reading {DELIMITER!r}")
    return f"{question}\n{DELIMITER}\n{answer}"


def _render_header(heading, fields):
    lines = [f"* {heading}", ":PROPERTIES:"]
    for name, value in fields:
        lines.append(f":{name}: {value}" if value else f":{name}:")
    lines.append(":END:")
    return "\n".join(lines) + "\n"


def _render_body(body):
    if body and not body.endswith("\n"):
        return body + "\n"
    return body


class DocumentStore:
    """
    Field-accessor interface the review core works against.
    Subclasses supply storage; rendering, body splitting and the
    cursor are shared.
    """

    def __init__(self):
        self._current = None

    # Storage primitives

    def enumerate_entries(self):
        raise NotImplementedError

    def get_field(self, entry, name):
        raise NotImplementedError

    def set_field(self, entry, name, value):
        raise NotImplementedError

    def fields(self, entry):
        """All (name, value) properties of an entry, in stored order."""
        raise NotImplementedError

    def heading(self, entry):
        raise NotImplementedError

    def raw_body(self, entry):
        raise NotImplementedError

    def add_entry(self, heading, properties, body):
        raise NotImplementedError

    def entry_id(self, entry):
        raise NotImplementedError

    def find(self, entry_id):
        raise NotImplementedError

    # Shared behaviour

    def set_fields(self, entry, values):
        """Write several fields. Stores that can do it in one write override this."""
        for name, value in values.items():
            self.set_field(entry, name, value)

    def entry_body(self, entry):
        return split_body(self.raw_body(entry))

    def current_entry(self):
        return self._current

    def goto(self, entry):
        self._current = entry

    def snapshot(self):
        """(entry, heading, fields, body) for every entry, in document order."""
        return [
            (e, self.heading(e), self.fields(e), self.raw_body(e))
            for e in self.enumerate_entries()
        ]

    def text(self):
        """The whole document as outline text."""
        return "".join(
            _render_header(heading, fields) + _render_body(body)
            for _, heading, fields, body in self.snapshot()
        )

    def entry_span(self, entry):
        """
        Locate an entry inside text().
        split is the start of the delimiter line, or the end of the
        body when the entry has no answer. Lines break on "\\n" only,
        the same rule split_body uses.
        """
        offset = 0
        for candidate, heading, fields, raw in self.snapshot():
            header = _render_header(heading, fields)
            body = _render_body(raw)
            if candidate == entry:
                body_start = offset + len(header)
                split = body_start + len(body)
                pos = body_start
                for line in body.split("\n"):
                    if line == DELIMITER:
                        split = pos
                        break
                    pos += len(line) + 1
                return Span(offset, body_start, split, body_start + len(body))
            offset += len(header) + len(body)
        raise UnknownEntryError(entry)


@dataclass(eq=False)
class Entry:
    entry_id: str
    heading: str
    properties: Dict[str, str] = field(default_factory=dict)
    body: str = ""


class OutlineDocument(DocumentStore):
    """An outline document held entirely in memory."""

    def __init__(self, entries=None):
        super().__init__()
        self._entries = []
        self._ids = itertools.count(1)
        for heading, properties, body in entries or []:
            self.add_entry(heading, properties, body)

    def _check(self, entry):
        if not any(e is entry for e in self._entries):
            raise UnknownEntryError(entry)
        return entry

    def enumerate_entries(self):
        return list(self._entries)

    def get_field(self, entry, name):
        return self._check(entry).properties.get(name)

    def set_field(self, entry, name, value):
        self._check(entry).properties[name] = str(value)

    def fields(self, entry):
        return list(self._check(entry).properties.items())

    def heading(self, entry):
        return self._check(entry).heading

    def raw_body(self, entry):
        return self._check(entry).body

    def add_entry(self, heading, properties, body):
        entry = Entry(str(next(self._ids)), heading, dict(properties), body)
        self._entries.append(entry)
        return entry

    def entry_id(self, entry):
        return self._check(entry).entry_id

    def find(self, entry_id):
        for entry in self._entries:
            if entry.entry_id == str(entry_id):
                return entry
        raise UnknownEntryError(entry_id)


def _check_field_name(name):
    if not name or "." in name or name.startswith("$"):
        raise ValueError(f"Field name {name!r} cannot be stored in MongoDB")


class MongoDocumentStore(DocumentStore):
    """
    Outline document kept in a MongoDB collection, one document per entry:
    {"_id", "position", "heading", "properties": {...}, "body"}.
    Entry handles are the documents' ObjectIds.
    """

    def __init__(self, collection):
        super().__init__()
        self.collection = collection

    @classmethod
    def from_uri(cls, uri, database_name, collection_name):
        """
        Connect to MongoDB and check the server answers.
        Parameters:
            uri(str): MongoDB connection string
            database_name(str): Database holding the document
            collection_name(str): Collection with one document per entry
        """
        client = MongoClient(
            uri,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000
        )
        client.admin.command('ping')
        logger.info("Connected to MongoDB database %s", database_name)
        return cls(client[database_name][collection_name])

    def _doc(self, entry):
        doc = self.collection.find_one({"_id": entry})
        if doc is None:
            raise UnknownEntryError(entry)
        return doc

    def enumerate_entries(self):
        cursor = self.collection.find({}, {"_id": 1}).sort("position", ASCENDING)
        return [doc["_id"] for doc in cursor]

    def snapshot(self):
        # One query for the whole document instead of one per accessor
        cursor = self.collection.find({}).sort("position", ASCENDING)
        return [
            (doc["_id"], doc.get("heading", ""),
             list(doc.get("properties", {}).items()), doc.get("body", ""))
            for doc in cursor
        ]

    def get_field(self, entry, name):
        return self._doc(entry).get("properties", {}).get(name)

    def set_field(self, entry, name, value):
        self.set_fields(entry, {name: value})

    def set_fields(self, entry, values):
        # One update so the fields land together
        updates = {}
        for name, value in values.items():
            _check_field_name(name)
            updates[f"properties.{name}"] = str(value)
        result = self.collection.update_one({"_id": entry}, {"$set": updates})
        if result.matched_count == 0:
            raise UnknownEntryError(entry)

    def fields(self, entry):
        return list(self._doc(entry).get("properties", {}).items())

    def heading(self, entry):
        return self._doc(entry).get("heading", "")

    def raw_body(self, entry):
        return self._doc(entry).get("body", "")

    def add_entry(self, heading, properties, body):
        for name in properties:
            _check_field_name(name)
        r = self.collection.insert_one({
            "position": self.collection.count_documents({}),
            "heading": heading,
            "properties": {k: str(v) for k, v in properties.items()},
            "body": body,
        })
        return r.inserted_id

    def entry_id(self, entry):
        return str(entry)

    def find(self, entry_id):
        try:
            oid = ObjectId(str(entry_id))
        except InvalidId:
            raise UnknownEntryError(entry_id)
        self._doc(oid)
        return oid
