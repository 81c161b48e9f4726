"""
Visible-region narrowing over a document's rendered text.

Narrowing never edits the document: a Region is only a pair of offsets
into DocumentStore.text().
"""

from collections import namedtuple

Region = namedtuple("Region", ["start", "end"])


def narrow_to_question(store, entry):
    """Heading, properties and question of entry, up to its "---" line."""
    span = store.entry_span(entry)
    return Region(span.start, span.split)


def narrow_to_card(store, entry):
    span = store.entry_span(entry)
    return Region(span.start, span.end)


def widen(store):
    return Region(0, len(store.text()))


def visible_text(store, region):
    return store.text()[region.start:region.end]
