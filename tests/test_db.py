"""Tests for sm2_drill/db.py -- in-memory and MongoDB document stores."""

import pytest
from bson import ObjectId

from sm2_drill.db import Entry, MongoDocumentStore, OutlineDocument, join_body, split_body
from sm2_drill.errors import UnknownEntryError

CARD = ("Capital", {"review": "2023-01-01", "history": ""},
        "What is the capital of France?\n---\nParis")
RENDERED = (
    "* Capital\n"
    ":PROPERTIES:\n"
    ":review: 2023-01-01\n"
    ":history:\n"
    ":END:\n"
    "What is the capital of France?\n"
    "---\n"
    "Paris\n"
)


@pytest.mark.parametrize("value", ["", "x", "two words", "line one\nline two", "2.36"])
def test_set_then_get_returns_value(value):
    doc = OutlineDocument([CARD])
    entry = doc.enumerate_entries()[0]
    doc.set_field(entry, "note", value)
    assert doc.get_field(entry, "note") == value


def test_missing_field_is_none():
    doc = OutlineDocument([CARD])
    assert doc.get_field(doc.enumerate_entries()[0], "EF") is None


def test_split_body_on_first_delimiter():
    assert split_body("Q\n---\nA\n---\nB") == ("Q", "A\n---\nB")
    assert split_body("multi\nline\n---\nanswer\nhere") == ("multi\nline", "answer\nhere")


def test_split_body_without_delimiter():
    assert split_body("Only a question") == ("Only a question", "")
    assert split_body("a ---\n----\n --- ") == ("a ---\n----\n --- ", "")


def test_entry_body():
    doc = OutlineDocument([CARD])
    assert doc.entry_body(doc.enumerate_entries()[0]) == \
        ("What is the capital of France?", "Paris")


def test_enumerate_in_document_order():
    doc = OutlineDocument([("A", {}, ""), ("B", {}, ""), ("C", {}, "")])
    assert [doc.heading(e) for e in doc.enumerate_entries()] == ["A", "B", "C"]


def test_text_rendering():
    doc = OutlineDocument([CARD])
    assert doc.text() == RENDERED


def test_entry_span_marks_question_and_answer():
    doc = OutlineDocument([("First", {}, "One?\n---\n1"), CARD])
    second = doc.enumerate_entries()[1]
    text = doc.text()
    span = doc.entry_span(second)
    assert text[span.start:span.end] == RENDERED
    assert text[span.start:span.split].endswith("What is the capital of France?\n")
    assert text[span.split:span.end] == "---\nParis\n"
    assert text[span.body_start:span.split] == "What is the capital of France?\n"


def test_entry_span_without_answer_covers_body():
    doc = OutlineDocument([("Note", {}, "No answer here")])
    span = doc.entry_span(doc.enumerate_entries()[0])
    assert span.split == span.end


def test_unknown_entry_rejected():
    doc = OutlineDocument([CARD])
    stranger = Entry("99", "Elsewhere")
    with pytest.raises(UnknownEntryError):
        doc.get_field(stranger, "review")
    with pytest.raises(UnknownEntryError):
        doc.entry_span(stranger)


def test_find_by_id():
    doc = OutlineDocument([("A", {}, ""), ("B", {}, "")])
    b = doc.enumerate_entries()[1]
    assert doc.find(doc.entry_id(b)) is b
    with pytest.raises(UnknownEntryError):
        doc.find("404")


def test_cursor():
    doc = OutlineDocument([("A", {}, ""), ("B", {}, "")])
    assert doc.current_entry() is None
    b = doc.enumerate_entries()[1]
    doc.goto(b)
    assert doc.current_entry() is b


# ============================================================================
# MongoDocumentStore
# ============================================================================

def _mongo_store(collection, entries):
    store = MongoDocumentStore(collection)
    for heading, properties, body in entries:
        store.add_entry(heading, properties, body)
    return store


def test_mongo_enumerates_by_position(fake_collection):
    store = _mongo_store(fake_collection, [("A", {}, ""), ("B", {}, ""), ("C", {}, "")])
    # Insertion order in the collection should not matter
    fake_collection.docs.reverse()
    assert [store.heading(e) for e in store.enumerate_entries()] == ["A", "B", "C"]


def test_mongo_set_then_get(fake_collection):
    store = _mongo_store(fake_collection, [CARD])
    entry = store.enumerate_entries()[0]
    store.set_field(entry, "note", "line one\nline two")
    assert store.get_field(entry, "note") == "line one\nline two"
    assert store.get_field(entry, "review") == "2023-01-01"
    assert store.get_field(entry, "EF") is None


def test_mongo_set_fields_is_one_update(fake_collection):
    store = _mongo_store(fake_collection, [CARD])
    entry = store.enumerate_entries()[0]
    store.set_fields(entry, {"review": "2023-01-02", "rep": "1", "interval": "1", "EF": "2.36"})
    assert fake_collection.update_calls == 1
    assert dict(store.fields(entry)) == {
        "review": "2023-01-02", "history": "", "rep": "1", "interval": "1", "EF": "2.36",
    }


def test_mongo_renders_like_memory(fake_collection):
    store = _mongo_store(fake_collection, [CARD])
    assert store.text() == RENDERED
    assert store.entry_body(store.enumerate_entries()[0]) == \
        ("What is the capital of France?", "Paris")


@pytest.mark.parametrize("name", ["a.b", "$set", ""])
def test_mongo_rejects_reserved_names(fake_collection, name):
    store = _mongo_store(fake_collection, [CARD])
    with pytest.raises(ValueError):
        store.set_field(store.enumerate_entries()[0], name, "x")


def test_mongo_unknown_entry(fake_collection):
    store = _mongo_store(fake_collection, [CARD])
    with pytest.raises(UnknownEntryError):
        store.get_field(ObjectId(), "review")
    with pytest.raises(UnknownEntryError):
        store.set_field(ObjectId(), "review", "2023-01-01")
    with pytest.raises(UnknownEntryError):
        store.find("not-an-object-id")
    with pytest.raises(UnknownEntryError):
        store.find(str(ObjectId()))


def test_mongo_find_round_trips_id(fake_collection):
    store = _mongo_store(fake_collection, [CARD])
    entry = store.enumerate_entries()[0]
    assert store.find(store.entry_id(entry)) == entry


def test_mongo_text_reads_collection_once(fake_collection):
    store = _mongo_store(fake_collection, [CARD, ("Second", {}, "Q?\n---\nA"), ("Third", {}, "x")])
    second = store.enumerate_entries()[1]
    fake_collection.reads = 0
    store.text()
    assert fake_collection.reads == 1
    fake_collection.reads = 0
    store.entry_span(second)
    assert fake_collection.reads == 1


def test_join_body_refuses_delimiter_in_question():
    with pytest.raises(ValueError):
        join_body("step 1\n---\nstep 2", "done")
    # Lookalikes are fine and survive the split
    question = "step 1\n----\n--- \nstep 2"
    assert split_body(join_body(question, "done")) == (question, "done")
    assert split_body(join_body("Q", "A\n---\nB")) == ("Q", "A\n---\nB")


@pytest.mark.parametrize("sep", ["\r", "\x0b", "\x0c", "\x1c", "\x85", " "])
def test_entry_span_breaks_lines_like_split_body(sep):
    """Only "\\n" ends a line, so the question region agrees with entry_body."""
    body = f"Q{sep}---\nA"
    doc = OutlineDocument([("Odd", {}, body)])
    entry = doc.enumerate_entries()[0]
    assert doc.entry_body(entry) == (body, "")
    span = doc.entry_span(entry)
    assert span.split == span.end
    assert doc.text()[span.body_start:span.split] == body + "\n"
