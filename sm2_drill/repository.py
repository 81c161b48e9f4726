import logging

from sm2_drill.sm2_card import SM2Card, parse_review, REVIEW

logger = logging.getLogger(__name__)


class CardRepository:
    """Reads and writes card scheduling state through a DocumentStore."""

    def __init__(self, store):
        self.store = store

    def due_cards(self, now):
        """
        Entries whose review date is strictly before now, in document order.
        Parameters:
            now(date): The day being reviewed
        Notes:
            Entries without a readable review date are never due.
        """
        result = []
        for entry in self.store.enumerate_entries():
            review = parse_review(self.store.get_field(entry, REVIEW))
            if review is not None and review < now:
                result.append(entry)
        logger.debug("%d due card(s) before %s", len(result), now)
        return result

    def card(self, entry):
        return SM2Card.from_fields(lambda name: self.store.get_field(entry, name))

    def save(self, entry, card):
        """Write back the four scheduler fields of card."""
        self.store.set_fields(entry, card.to_fields())
