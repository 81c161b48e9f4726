"""
Review session state machine.

IDLE -> GATHERING -> PRESENTING(card) <-> REVEALED(card) -> ... -> IDLE
"""

import enum
import logging
import random
from datetime import date

from sm2_drill.db import join_body
from sm2_drill.errors import SessionStateError
from sm2_drill.history import HistoryLog
from sm2_drill.presentation import narrow_to_card, narrow_to_question, visible_text
from sm2_drill.repository import CardRepository
from sm2_drill.sm2_card import HISTORY, REVIEW, check_rating

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    IDLE = "idle"
    GATHERING = "gathering"
    PRESENTING = "presenting"
    REVEALED = "revealed"


def shuffled(items, rng=random):
    """
    Return a new list holding items in uniformly random order (Fisher-Yates).
    Parameters:
        items(iterable): Sequence to permute, left untouched
        rng: Anything with randrange, e.g. random.Random(seed)
    """
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randrange(i + 1)
        result[i], result[j] = result[j], result[i]
    return result


class ReviewSession:
    """
    One learner's pass over the due cards of one document.
    Each document should get its own session; the queue lives here and
    is never persisted.
    """

    def __init__(self, store, rng=None, clock=date.today):
        """
        Parameters:
            store(DocumentStore): Document holding the cards
            rng: Random source for ordering, the random module if None
            clock(callable): Returns today's date
        """
        self.store = store
        self.repository = CardRepository(store)
        self.history = HistoryLog(store, clock)
        self.rng = rng if rng is not None else random
        self.clock = clock
        self.state = SessionState.IDLE
        self.queue = []

    @property
    def current(self):
        """Entry being shown, or None when idle."""
        if self.state in (SessionState.PRESENTING, SessionState.REVEALED) and self.queue:
            return self.queue[0]
        return None

    def _require(self, *states):
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise SessionStateError(f"Not allowed while {self.state.value} (needs {allowed})")

    def _present_front(self):
        if self.queue:
            self.state = SessionState.PRESENTING
            self.store.goto(self.queue[0])
        else:
            self.state = SessionState.IDLE
        logger.debug("Session now %s, %d card(s) left", self.state.value, len(self.queue))

    def start_new_card_template(self, question="", answer="", heading="Card"):
        """
        Append a blank card that is scheduled for today.
        A question containing a "---" line raises ValueError and nothing is added.
        """
        body = join_body(question, answer)
        properties = {REVIEW: self.clock().isoformat(), HISTORY: ""}
        entry = self.store.add_entry(heading, properties, body)
        logger.info("Created card %s", self.store.entry_id(entry))
        return entry

    def start_review(self):
        """
        Gather the due cards and queue them in random order.
        Returns the number of queued cards; 0 means nothing to review.
        """
        self.state = SessionState.GATHERING
        try:
            due = self.repository.due_cards(self.clock())
        except Exception:
            self.state = SessionState.IDLE
            self.queue = []
            raise
        self.queue = shuffled(due, self.rng)
        logger.info("Starting review with %d due card(s)", len(self.queue))
        self._present_front()
        return len(self.queue)

    def prompt_card(self):
        """Show only the question of the current card."""
        self._require(SessionState.PRESENTING)
        return visible_text(self.store, narrow_to_question(self.store, self.current))

    def reveal_card(self):
        """Show question and answer of the current card."""
        self._require(SessionState.PRESENTING, SessionState.REVEALED)
        text = visible_text(self.store, narrow_to_card(self.store, self.current))
        self.state = SessionState.REVEALED
        return text

    def next_card(self):
        """Drop the current card without rating it and move on."""
        self._require(SessionState.PRESENTING, SessionState.REVEALED)
        self.queue.pop(0)
        self._present_front()

    def rate_yourself(self, rating):
        """
        Record a rating for the current card, reschedule it and advance.
        Parameters:
            rating(int): Recall quality 0-5
        Notes:
            An invalid rating raises InvalidRatingError before anything is written.
        """
        self._require(SessionState.PRESENTING, SessionState.REVEALED)
        check_rating(rating)
        entry = self.current
        today = self.clock()

        card = self.repository.card(entry)
        schedule = card.review_with(rating, today)

        self.history.record(entry, rating)
        self.repository.save(entry, card)
        logger.info(
            "Rated card %s with %d, next review %s (interval %d, EF %.2f)",
            self.store.entry_id(entry), rating, schedule.review,
            schedule.interval, schedule.ef,
        )
        self.next_card()
        return schedule
