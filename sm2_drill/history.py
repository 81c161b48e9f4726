"""
Append-only log of rating events, stored on each card as
space-separated "<YYYY-MM-DD>:rate:<rating>" tokens.
"""

import logging
from collections import namedtuple
from datetime import date

from sm2_drill.sm2_card import HISTORY

logger = logging.getLogger(__name__)

RatingEvent = namedtuple("RatingEvent", ["when", "rating"])


def format_event(when, rating):
    return f"{when.isoformat()}:rate:{rating}"


def append_event(history, when, rating):
    """Return history with one more event, space separated."""
    token = format_event(when, rating)
    if not history:
        return token
    return f"{history} {token}"


def parse_history(text):
    """
    Read a history field back into RatingEvents, oldest first.
    Malformed tokens are skipped with a warning.
    """
    events = []
    for token in (text or "").split():
        parts = token.split(":")
        if len(parts) != 3 or parts[1] != "rate":
            logger.warning("Skipping malformed history token %r", token)
            continue
        try:
            events.append(RatingEvent(date.fromisoformat(parts[0]), int(parts[2])))
        except ValueError:
            logger.warning("Skipping malformed history token %r", token)
    return events


def record_rating(store, entry, rating, now):
    """
    Append one rating event to the entry's history field.
    Parameters:
        store(DocumentStore): Where the card lives
        entry: Handle of the card entry
        rating(int): Already validated rating (0-5)
        now(date): Date stamped on the event
    """
    history = store.get_field(entry, HISTORY) or ""
    store.set_field(entry, HISTORY, append_event(history, now, rating))


class HistoryLog:
    """A store plus the clock that timestamps its events."""

    def __init__(self, store, clock=date.today):
        self.store = store
        self.clock = clock

    def record(self, entry, rating):
        record_rating(self.store, entry, rating, self.clock())

    def events(self, entry):
        return parse_history(self.store.get_field(entry, HISTORY))
