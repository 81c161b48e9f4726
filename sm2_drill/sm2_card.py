import logging
import math
from collections import namedtuple
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from sm2_drill.errors import InvalidRatingError

logger = logging.getLogger(__name__)

# Defaults for fields a card has never had written
DEFAULT_REP = 0
DEFAULT_INTERVAL = 1
DEFAULT_EF = 2.5
MIN_EF = 1.3

# Persisted property names
REVIEW = "review"
REP = "rep"
INTERVAL = "interval"
EF = "EF"
HISTORY = "history"
SCHEDULER_FIELDS = (REVIEW, REP, INTERVAL, EF)

Schedule = namedtuple("Schedule", ["review", "rep", "interval", "ef"])


def check_rating(rating):
    """Raise InvalidRatingError unless rating is an int in 0-5."""
    if isinstance(rating, bool) or not isinstance(rating, int) or not 0 <= rating <= 5:
        raise InvalidRatingError(rating)
    return rating


def schedule_next(rating, prior_review, rep, interval, ef):
    """
    Compute the next SM-2 schedule for one card.
    Parameters:
        rating(int): Recall quality 0-5, below 3 counts as a failure
        prior_review(date): The review date the card was scheduled for
        rep(int): Consecutive successful reviews so far
        interval(int): Current gap in days
        ef(float): Current easiness factor
    Returns:
        Schedule(review, rep, interval, ef)
    """
    check_rating(rating)

    if rating < 3:
        new_rep = 0
        new_interval = 1
    else:
        new_rep = rep + 1
        if rep == 0:
            new_interval = 1
        elif rep == 1:
            new_interval = 6
        else:
            new_interval = max(1, round(interval * ef))

    # EF moves on every rating, failures included
    new_ef = max(MIN_EF, ef - 0.8 + 0.28 * rating - 0.02 * rating ** 2)

    # Anchored on the scheduled date, not on the day the review happened
    new_review = prior_review + timedelta(days=new_interval)
    return Schedule(new_review, new_rep, new_interval, new_ef)


def _warn_default(name, raw, default):
    logger.warning("Unparsable %s field %r, using default %r", name, raw, default)
    return default


def parse_rep(raw):
    if raw is None or raw.strip() == "":
        return DEFAULT_REP
    try:
        value = int(raw)
    except ValueError:
        return _warn_default(REP, raw, DEFAULT_REP)
    if value < 0:
        return _warn_default(REP, raw, DEFAULT_REP)
    return value


def parse_interval(raw):
    if raw is None or raw.strip() == "":
        return DEFAULT_INTERVAL
    try:
        value = int(raw)
    except ValueError:
        return _warn_default(INTERVAL, raw, DEFAULT_INTERVAL)
    if value < 1:
        return _warn_default(INTERVAL, raw, DEFAULT_INTERVAL)
    return value


def parse_ef(raw):
    """Read an easiness factor; values below the floor are clamped to it."""
    if raw is None or raw.strip() == "":
        return DEFAULT_EF
    try:
        value = float(raw)
    except ValueError:
        return _warn_default(EF, raw, DEFAULT_EF)
    if not math.isfinite(value):
        return _warn_default(EF, raw, DEFAULT_EF)
    return max(MIN_EF, value)


def parse_review(raw):
    """Read a YYYY-MM-DD date. Missing or malformed dates give None."""
    if raw is None or raw.strip() == "":
        return None
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        logger.warning("Unparsable %s field %r, card will not come due", REVIEW, raw)
        return None


@dataclass
class SM2Card:
    """
    Scheduling state of a single card, as stored on its document entry.
    Absent fields are resolved to their SM-2 defaults when read.
    """
    review: Optional[date] = None
    rep: int = DEFAULT_REP
    interval: int = DEFAULT_INTERVAL
    ef: float = DEFAULT_EF
    history: str = ""

    @classmethod
    def from_fields(cls, get):
        """
        Build a card from a field getter.
        Parameters:
            get(callable): name -> raw string value or None
        """
        return cls(
            review=parse_review(get(REVIEW)),
            rep=parse_rep(get(REP)),
            interval=parse_interval(get(INTERVAL)),
            ef=parse_ef(get(EF)),
            history=get(HISTORY) or "",
        )

    def to_fields(self):
        """The four scheduler fields in their persisted string encoding."""
        return {
            REVIEW: self.review.isoformat() if self.review else "",
            REP: str(self.rep),
            INTERVAL: str(self.interval),
            EF: repr(float(self.ef)),
        }

    def is_due(self, today):
        return self.review is not None and self.review < today

    def review_with(self, rating, today=None):
        """
        Apply one rating to this card in place.
        Parameters:
            rating(int): Performance rating (0-5 integer)
            today(date): Anchor used only when the card has no review date
        """
        anchor = self.review or today or date.today()
        schedule = schedule_next(rating, anchor, self.rep, self.interval, self.ef)
        self.review = schedule.review
        self.rep = schedule.rep
        self.interval = schedule.interval
        self.ef = schedule.ef
        return schedule
