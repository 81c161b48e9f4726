class DrillError(Exception):
    """Base class for errors raised by the review core."""


class InvalidRatingError(DrillError, ValueError):
    """A recall rating outside 0-5 was supplied. Nothing was written."""

    def __init__(self, rating):
        super().__init__(f"Rating must be an integer between 0-5, got {rating!r}")
        self.rating = rating


class SessionStateError(DrillError, RuntimeError):
    """A session operation was called from a state it is not valid in."""


class UnknownEntryError(DrillError, KeyError):
    """No entry with the given handle exists in the document."""
